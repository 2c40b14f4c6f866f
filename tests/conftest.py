import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    # CLI tests install a handler bound to CliRunner's temporary stderr
    yield
    logging.getLogger().handlers.clear()
