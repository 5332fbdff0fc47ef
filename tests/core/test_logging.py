"""Tests for the structlog setup."""

import structlog
from structlog.testing import capture_logs

from icglr_spine.core.logging import LogContext, get_logger


class TestGetLogger:
    def test_named_logger_logs(self):
        logger = get_logger("icglr_spine.tests.named")
        with capture_logs() as logs:
            logger.critical("catalog_loaded", documents=9)
        assert logs == [{"event": "catalog_loaded", "documents": 9, "log_level": "critical"}]

    def test_unnamed_logger(self):
        logger = get_logger()
        with capture_logs() as logs:
            logger.critical("model_compiled")
        assert logs[0]["event"] == "model_compiled"

    def test_every_module_logger_is_importable(self):
        import icglr_spine.cli.app
        import icglr_spine.mapping.mapper
        import icglr_spine.ops.records

        assert icglr_spine.mapping.mapper.logger is not None


class TestLogContext:
    def test_binds_and_restores(self):
        with LogContext(request_id="abc123", table="mine_sites"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["request_id"] == "abc123"
            assert bound["table"] == "mine_sites"
        assert "request_id" not in structlog.contextvars.get_contextvars()
