"""Tests for the logger capability adapter."""

import logging

from dagflow.core.engine import DagEngine
from dagflow.core.log import Logger, StdlibLogger


class TestStdlibLogger:
    """Tests for StdlibLogger."""

    def test_satisfies_protocol(self):
        assert isinstance(StdlibLogger(), Logger)

    def test_default_logger_name(self):
        assert StdlibLogger().logger.name == "dagflow"

    def test_warn_maps_to_warning(self, mocker):
        backend = logging.getLogger("dagflow.tests.warn")
        warning = mocker.patch.object(backend, "warning")

        StdlibLogger(backend).warn("retrying", {"node": "a", "attempt": 2})

        warning.assert_called_once()
        message = warning.call_args.args[0]
        assert message == "retrying [attempt=2 node='a']"
        assert warning.call_args.kwargs["extra"] == {"meta": {"node": "a", "attempt": 2}}

    def test_message_without_meta(self, caplog):
        with caplog.at_level(logging.INFO, logger="dagflow.tests.plain"):
            StdlibLogger("dagflow.tests.plain").info("hello")

        assert caplog.records[-1].getMessage() == "hello"
        assert caplog.records[-1].meta == {}

    def test_error_level(self, caplog):
        with caplog.at_level(logging.ERROR, logger="dagflow.tests.error"):
            StdlibLogger("dagflow.tests.error").error("broken", {"node": "x"})

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.meta == {"node": "x"}


def test_engine_defaults_to_stdlib_logger(caplog):
    engine = DagEngine()
    engine.add_node(id="a", execute=lambda c, d, t: None)

    with caplog.at_level(logging.INFO, logger="dagflow"):
        result = engine.run({})

    assert result.success
    assert isinstance(engine.logger, StdlibLogger)
    assert any(record.getMessage().startswith("Run completed") for record in caplog.records)
