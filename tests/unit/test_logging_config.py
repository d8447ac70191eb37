"""Unit tests for structured logging setup."""

import logging

from abr.logging_config import StructuredFormatter, get_logger, setup_logging


class TestStructuredFormatter:
    def test_key_value_output_with_context(self):
        record = logging.LogRecord(
            name="abr.quality_selector",
            level=logging.INFO,
            pathname=__file__,
            lineno=10,
            msg="Switching up to level %d",
            args=(2,),
            exc_info=None,
        )
        record.session_id = "abc123"
        record.level_index = 2
        record.bandwidth_bps = 2940000.0

        line = StructuredFormatter().format(record)

        assert "level=INFO" in line
        assert "logger=abr.quality_selector" in line
        assert "message=Switching up to level 2" in line
        assert "session_id=abc123" in line
        assert "level_index=2" in line
        assert "bandwidth_bps=2940000.0" in line

    def test_setup_logging_installs_single_handler(self):
        root = logging.getLogger()
        saved = root.handlers[:]
        saved_level = root.level
        try:
            setup_logging()
            setup_logging()

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert get_logger("abr.session").name == "abr.session"

            setup_logging("debug")

            assert root.handlers[0].level == logging.DEBUG
            assert logging.getLogger("abr").level == logging.DEBUG
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
            root.setLevel(saved_level)
            logging.getLogger("abr").setLevel(logging.NOTSET)
            for handler in saved:
                root.addHandler(handler)
