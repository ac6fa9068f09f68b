import logging

import pytest

from sfclient.logging_config import configure_logging


def test_configure_logging_levels(caplog):
    # None: keep default WARNING
    configure_logging(None)
    logger = logging.getLogger("sfclient.test")
    logger.warning("warn")
    assert any("warn" in rec.message for rec in caplog.records)

    caplog.clear()
    configure_logging(logging.INFO)
    logger.info("info-ok")
    assert any("info-ok" in rec.message for rec in caplog.records)

    caplog.clear()
    configure_logging("debug")
    logger.debug("dbg")
    assert any("dbg" in rec.message for rec in caplog.records)


def test_unknown_level_name():
    with pytest.raises(ValueError):
        configure_logging("chatty")


def test_urllib3_is_quietened():
    configure_logging(logging.DEBUG)
    assert logging.getLogger("urllib3.connectionpool").level == logging.ERROR
