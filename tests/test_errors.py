from decomp_verifier import MalformedReport, ReportError, ToolExecutionFailed, ToolNotConfigured


def test_all_errors_share_base():
    for exc in (ToolNotConfigured(), ToolExecutionFailed(1), MalformedReport("x")):
        assert isinstance(exc, ReportError)
        assert str(exc) == exc.message


def test_execution_failed_mentions_exit_code():
    exc = ToolExecutionFailed(137)
    assert exc.exit_code == 137
    assert "137" in exc.message


def test_custom_messages():
    assert ToolNotConfigured("set it").message == "set it"
    assert ToolExecutionFailed(-1, "could not start").message == "could not start"


def test_malformed_keeps_detail():
    exc = MalformedReport("missing field 'units'")
    assert exc.detail == "missing field 'units'"
    assert "unreadable report" in exc.message
