import logging

import pytest


@pytest.fixture(autouse=True)
def _propagate_package_logs():
    # setup_logging() detaches the package logger from the root handler used by caplog.
    log = logging.getLogger("epub2obsidian")
    saved = (log.propagate, log.level, list(log.handlers))
    log.propagate = True
    log.setLevel(logging.NOTSET)
    log.handlers = []
    yield
    log.propagate, level, handlers = saved
    log.setLevel(level)
    log.handlers = handlers
