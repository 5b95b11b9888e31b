"""Runs objdiff-cli and turns its JSON output into a Report."""

import json
import logging
from pathlib import Path
from typing import Callable, Optional

from .errors import MalformedReport, ToolExecutionFailed, ToolNotConfigured
from .model import Report
from .toolchain import (
    ToolRun,
    ToolchainSettings,
    invoke_comparison_tool,
    locate_comparison_tool,
)


logger = logging.getLogger(__name__)


Locator = Callable[[], Optional[Path]]
Invoker = Callable[[Path, Optional[Path]], ToolRun]


def parse_report(text: str) -> Report:
    """Decode objdiff-cli stdout into a Report, or raise MalformedReport."""
    if not text or not text.strip():
        raise MalformedReport("no output")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedReport(f"invalid JSON ({e.msg} at line {e.lineno})") from e
    except RecursionError as e:
        raise MalformedReport("JSON nested too deeply") from e
    return Report.from_dict(data)


class ReportAcquirer:
    """
    Produces a fresh Report per call.

    Holds no view state; callers decide what to do with the result.
    """

    def __init__(
        self,
        locate: Locator,
        invoke: Invoker = invoke_comparison_tool,
        working_directory: Optional[Path] = None,
    ):
        self.locate = locate
        self.invoke = invoke
        self.working_directory = working_directory

    @classmethod
    def from_settings(cls, settings: ToolchainSettings) -> "ReportAcquirer":
        return cls(
            locate=lambda: locate_comparison_tool(settings),
            working_directory=settings.working_directory,
        )

    def run_report(self) -> Report:
        executable = self.locate()
        if executable is None:
            raise ToolNotConfigured()

        try:
            result = self.invoke(executable, self.working_directory)
        except OSError as e:
            logger.error("Could not start %s: %s", executable, e)
            raise ToolExecutionFailed(-1, f"Could not start objdiff-cli: {e}") from e

        if result.exit_code != 0:
            logger.warning(
                "objdiff-cli exited with code %d: %s", result.exit_code, result.stderr.strip()
            )
            raise ToolExecutionFailed(result.exit_code)

        report = parse_report(result.stdout)
        logger.info(
            "Report loaded: %d units, %d mismatched",
            len(report.units),
            report.mismatch_count,
        )
        return report
