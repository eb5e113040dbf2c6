import json
import logging

import pytest

from devtrace.logging_config import (
    NAMESPACE,
    JSONFormatter,
    PlainFormatter,
    StructuredLogger,
    get_logger,
    setup_logging,
)


@pytest.fixture
def restore_namespace_logger():
    namespace_logger = logging.getLogger(NAMESPACE)
    handlers = list(namespace_logger.handlers)
    level, propagate = namespace_logger.level, namespace_logger.propagate
    yield namespace_logger
    for handler in namespace_logger.handlers:
        if handler not in handlers:
            handler.close()
    namespace_logger.handlers[:] = handlers
    namespace_logger.setLevel(level)
    namespace_logger.propagate = propagate


def make_record(name, msg, **fields):
    record = logging.LogRecord(name, logging.WARNING, __file__, 1, msg, (), None)
    record.fields = fields
    return record


def test_loggers_are_structured():
    assert isinstance(get_logger("tests"), StructuredLogger)


def test_component_names_are_namespaced():
    assert get_logger("supervisor").name == "devtrace.supervisor"
    assert get_logger("devtrace.supervisor") is get_logger("supervisor")
    assert get_logger("devtrace").name == "devtrace"


def test_json_formatter_includes_fields():
    record = make_record("devtrace.ports", "Port check failed", port=3000)
    data = json.loads(JSONFormatter().format(record))
    assert data["level"] == "warning"
    assert data["component"] == "ports"
    assert data["msg"] == "Port check failed"
    assert data["port"] == 3000
    assert data["ts"].endswith("Z")


def test_plain_formatter_appends_fields():
    record = make_record("devtrace.browser.provision", "Launch failed", attempt=2, port=9222)
    line = PlainFormatter().format(record)
    assert line.endswith("WARNING browser.provision: Launch failed attempt=2 port=9222")


def test_plain_formatter_without_fields():
    line = PlainFormatter().format(make_record("devtrace.session", "Continuing"))
    assert line.endswith("WARNING session: Continuing")


def test_setup_logging_defaults_to_warning(restore_namespace_logger, monkeypatch):
    monkeypatch.delenv("DEVTRACE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DEVTRACE_LOG_FILE", raising=False)
    configured = setup_logging()
    assert configured is restore_namespace_logger
    assert configured.level == logging.WARNING
    assert configured.propagate is False
    assert len(configured.handlers) == 1


def test_setup_logging_leaves_root_alone(restore_namespace_logger):
    root = logging.getLogger()
    handlers = list(root.handlers)
    setup_logging(level="debug")
    assert root.handlers == handlers


def test_setup_logging_twice_replaces_handlers(restore_namespace_logger, tmp_path):
    setup_logging(log_file=str(tmp_path / "first.log"))
    configured = setup_logging()
    assert len(configured.handlers) == 1


def test_setup_logging_json_file(restore_namespace_logger, tmp_path):
    log_file = tmp_path / "diagnostics.jsonl"
    setup_logging(level="debug", json_format=True, log_file=str(log_file))

    get_logger("tests").info_with("Spawned process", label="server", pid=42)
    for handler in restore_namespace_logger.handlers:
        handler.flush()

    line = json.loads(log_file.read_text().splitlines()[-1])
    assert line["component"] == "tests"
    assert line["msg"] == "Spawned process"
    assert line["label"] == "server"
    assert line["pid"] == 42
