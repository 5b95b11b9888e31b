import json
from pathlib import Path

import pytest

from decomp_verifier import Report, ReportAcquirer, ReportSession, ToolRun


def scenario_dict() -> dict:
    """Two units: a.o fully matched, b.o with one mismatched function."""
    return {
        "totalProgress": 0.5,
        "matchedObjects": 1,
        "totalObjects": 2,
        "timestamp": "2024-05-01T12:00:00Z",
        "units": [
            {"name": "a.o", "matchPercent": 1.0, "symbols": []},
            {
                "name": "b.o",
                "matchPercent": 0.25,
                "symbols": [
                    {"name": "fn1", "matchPercent": 0.0, "baseSize": 100, "targetSize": 120},
                    {"name": "fn2", "matchPercent": 1.0, "baseSize": 40, "targetSize": 40},
                ],
            },
        ],
    }


def units_dict(*units: tuple[str, float]) -> dict:
    return {
        "totalProgress": 0.0,
        "matchedObjects": 0,
        "totalObjects": len(units),
        "timestamp": 1714564800000,
        "units": [{"name": n, "matchPercent": p, "symbols": []} for n, p in units],
    }


class FakeTool:
    """Stands in for objdiff-cli: returns queued ToolRuns in order."""

    def __init__(self, *runs: ToolRun, path: Path = Path("/opt/objdiff-cli")):
        self.runs = list(runs)
        self.path = path
        self.calls: list[tuple[Path, Path]] = []

    def locate(self):
        return self.path

    def invoke(self, executable, working_directory):
        self.calls.append((executable, working_directory))
        return self.runs.pop(0)

    def acquirer(self) -> ReportAcquirer:
        return ReportAcquirer(self.locate, self.invoke, Path("/work/melee"))


def ok_run(data: dict) -> ToolRun:
    return ToolRun(exit_code=0, stdout=json.dumps(data))


@pytest.fixture
def scenario() -> dict:
    return scenario_dict()


@pytest.fixture
def scenario_report() -> Report:
    return Report.from_dict(scenario_dict())


@pytest.fixture
def loaded_session() -> ReportSession:
    tool = FakeTool(ok_run(scenario_dict()))
    session = ReportSession(tool.acquirer())
    session.run_report()
    return session
