import io

import pytest

from bepoz_toolkit.resources.logging_method import MethodLogger, method_logger


@pytest.fixture
def trace():
    stream = io.StringIO()
    method_logger.set_stream(stream)
    yield stream
    method_logger.disable()
    method_logger.set_stream(None)


def test_singleton():
    assert MethodLogger() is method_logger


def test_disabled_by_default_passes_through(trace):
    @method_logger.log_function
    def add(a, b):
        return a + b

    assert add(1, 2) == 3
    assert trace.getvalue() == ""


def test_enabled_logs_nested_calls(trace):
    @method_logger.log_function
    def inner(value):
        return value * 2

    @method_logger.log_function
    def outer(value):
        return inner(value) + 1

    method_logger.enable()
    assert outer(3) == 7

    lines = trace.getvalue().splitlines()
    assert lines[0] == "┌─ INPUT: [outer]"
    assert "│   ┌─ INPUT: [inner]" in lines
    assert any(line.startswith("└─ OUTPUT: [outer]") for line in lines)
    assert "    value: 3" in trace.getvalue()


def test_errors_are_logged_and_reraised(trace):
    @method_logger.log_function
    def boom():
        raise RuntimeError("fallo")

    method_logger.enable()
    with pytest.raises(RuntimeError):
        boom()
    assert "ERROR: [boom]" in trace.getvalue()
    assert "RuntimeError: fallo" in trace.getvalue()


def test_class_trigger_limits_output(trace):
    @method_logger.log_class
    class Installer:
        def install(self, tool_id):
            return helper(tool_id)

    @method_logger.log_function
    def helper(tool_id):
        return tool_id.upper()

    method_logger.set_triggers(classes=["Installer"])
    helper("suelto")
    assert trace.getvalue() == ""

    assert Installer().install("audit") == "AUDIT"
    output = trace.getvalue()
    assert "INPUT: [Installer][install]" in output
    assert "INPUT: [helper]" in output


def test_configure_from_env(trace, monkeypatch):
    monkeypatch.setenv("BEPOZ_TOOLKIT_TRACE", "install,ToolRunner")
    method_logger.configure_from_env()
    assert method_logger.enabled
    assert method_logger.trigger_functions == ["install"]
    assert method_logger.trigger_classes == ["ToolRunner"]

    monkeypatch.setenv("BEPOZ_TOOLKIT_TRACE", "all")
    method_logger.configure_from_env()
    assert method_logger.enabled
    assert method_logger.trigger_classes == []

    monkeypatch.delenv("BEPOZ_TOOLKIT_TRACE")
    method_logger.configure_from_env()
    assert not method_logger.enabled
