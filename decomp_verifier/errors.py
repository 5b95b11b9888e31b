"""Errors raised while acquiring a match report."""


class ReportError(Exception):
    """Base class for failures of a report run. `message` is shown to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ToolNotConfigured(ReportError):
    def __init__(self, message: str = None):
        super().__init__(
            message
            or "objdiff-cli not found. Set its path in Settings or place it in the project folder."
        )


class ToolExecutionFailed(ReportError):
    def __init__(self, exit_code: int, message: str = None):
        self.exit_code = exit_code
        super().__init__(message or f"objdiff-cli failed (exit code {exit_code}).")


class MalformedReport(ReportError):
    """The tool ran but its output is not a report we can read."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"objdiff-cli produced an unreadable report: {detail}")
