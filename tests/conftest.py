import logging

import pytest


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("whale_monitor.tests")
