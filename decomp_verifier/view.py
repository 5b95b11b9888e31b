"""
Report view derivation
======================
Pure functions and small state holders that turn a Report plus the current
view parameters (filter text, sort key, sort direction, expanded units)
into a ViewModel that a front-end draws without further logic.
"""

import locale
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .model import Report, Unit


PLACEHOLDER_NO_REPORT = 'Click "Run Verification Report" to start.'
PLACEHOLDER_LOADING = "Executing objdiff-cli, this may take a moment..."


# =============================================================================
# View Parameters
# =============================================================================

class SortKey(Enum):
    NAME = "name"
    MATCH_PERCENT = "match_percent"


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    def toggled(self) -> "SortDirection":
        if self is SortDirection.ASCENDING:
            return SortDirection.DESCENDING
        return SortDirection.ASCENDING


class ViewState(Enum):
    NO_REPORT = "no_report"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


DEFAULT_SORT_KEY = SortKey.MATCH_PERCENT
DEFAULT_SORT_DIRECTION = SortDirection.ASCENDING


# =============================================================================
# Filter / Sort
# =============================================================================

def _sort_value(unit: Unit, key: SortKey):
    if key is SortKey.NAME:
        return unit.name
    return unit.match_percent


def sort_units(units: Iterable[Unit], key: SortKey, direction: SortDirection) -> list[Unit]:
    """
    Return `units` ordered by `key`.

    Ties keep their incoming order in both directions, so sorting an
    already sorted list again is a no-op.
    """
    return sorted(
        units,
        key=lambda u: _sort_value(u, key),
        reverse=direction is SortDirection.DESCENDING,
    )


def filter_units(units: Iterable[Unit], query: str) -> list[Unit]:
    """Units whose name contains `query`, ignoring case. Empty query keeps all."""
    needle = query.lower()
    if not needle:
        return list(units)
    return [u for u in units if needle in u.name.lower()]


def derive_view(
    report: Report,
    query: str,
    key: SortKey = DEFAULT_SORT_KEY,
    direction: SortDirection = DEFAULT_SORT_DIRECTION,
) -> list[Unit]:
    return filter_units(sort_units(report.units, key, direction), query)


def next_sort(
    clicked: SortKey, current_key: SortKey, current_direction: SortDirection
) -> tuple[SortKey, SortDirection]:
    """Header click: same key flips the direction, a new key starts ascending."""
    if clicked is current_key:
        return current_key, current_direction.toggled()
    return clicked, SortDirection.ASCENDING


# =============================================================================
# Expansion
# =============================================================================

class ExpansionState:
    """Names of units whose per-symbol breakdown is open."""

    def __init__(self):
        self._expanded: set[str] = set()

    def toggle(self, unit_name: str) -> bool:
        """Flip `unit_name` and return whether it is now expanded."""
        if unit_name in self._expanded:
            self._expanded.discard(unit_name)
            return False
        self._expanded.add(unit_name)
        return True

    def is_expanded(self, unit_name: str) -> bool:
        return unit_name in self._expanded

    def clear(self) -> None:
        self._expanded.clear()

    def __contains__(self, unit_name: str) -> bool:
        return unit_name in self._expanded

    def __len__(self) -> int:
        return len(self._expanded)


# =============================================================================
# View Model
# =============================================================================

def format_percent(fraction: float) -> str:
    return f"{fraction * 100:.2f}%"


def use_user_locale() -> bool:
    """Switch LC_TIME to the user's locale so %c formats the way they expect."""
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error:
        return False
    return True


def format_timestamp(timestamp: datetime) -> str:
    """Local time in the user's locale format."""
    return timestamp.astimezone().strftime("%c")


@dataclass
class Summary:
    progress_text: str
    progress_fraction: float
    objects_text: str
    timestamp_text: str


@dataclass
class SymbolRow:
    name: str
    match_text: str
    base_size: int
    target_size: int

    @property
    def size_text(self) -> str:
        return f"{self.base_size} / {self.target_size} bytes"


@dataclass
class UnitRow:
    name: str
    match_text: str
    status: str
    is_mismatch: bool
    expanded: bool = False
    details: list[SymbolRow] = field(default_factory=list)

    @property
    def expandable(self) -> bool:
        return self.is_mismatch


@dataclass
class ViewModel:
    state: ViewState
    placeholder: Optional[str] = None
    summary: Optional[Summary] = None
    rows: list[UnitRow] = field(default_factory=list)
    filter_query: str = ""
    sort_key: SortKey = DEFAULT_SORT_KEY
    sort_direction: SortDirection = DEFAULT_SORT_DIRECTION
    unit_count: int = 0

    @property
    def run_enabled(self) -> bool:
        return self.state is not ViewState.LOADING

    @property
    def controls_visible(self) -> bool:
        """Filter box, summary and table are only shown for a loaded report."""
        return self.state is ViewState.LOADED

    @property
    def shown_count(self) -> int:
        return len(self.rows)


def render_summary(report: Report) -> Summary:
    return Summary(
        progress_text=format_percent(report.total_progress),
        progress_fraction=report.total_progress,
        objects_text=f"{report.matched_objects} / {report.total_objects}",
        timestamp_text=format_timestamp(report.timestamp),
    )


def render_row(unit: Unit, expansion: ExpansionState) -> UnitRow:
    row = UnitRow(
        name=unit.name,
        match_text=format_percent(unit.match_percent),
        status="Mismatch" if unit.is_mismatch else "Matched",
        is_mismatch=unit.is_mismatch,
    )
    # Matched units never show a breakdown, even if their name is in the set
    if unit.is_mismatch and expansion.is_expanded(unit.name):
        row.expanded = True
        row.details = [
            SymbolRow(
                name=s.name,
                match_text=format_percent(s.match_percent),
                base_size=s.base_size,
                target_size=s.target_size,
            )
            for s in unit.mismatched_symbols()
        ]
    return row


def render(
    state: ViewState,
    report: Optional[Report] = None,
    units: Iterable[Unit] = (),
    expansion: Optional[ExpansionState] = None,
    *,
    error_message: str = "",
    filter_query: str = "",
    sort_key: SortKey = DEFAULT_SORT_KEY,
    sort_direction: SortDirection = DEFAULT_SORT_DIRECTION,
) -> ViewModel:
    """
    Project the current state into a ViewModel.

    `units` is the already filtered and sorted sequence; it is only used in
    the LOADED state.
    """
    vm = ViewModel(
        state=state,
        filter_query=filter_query,
        sort_key=sort_key,
        sort_direction=sort_direction,
    )

    if state is ViewState.NO_REPORT:
        vm.placeholder = PLACEHOLDER_NO_REPORT
    elif state is ViewState.LOADING:
        vm.placeholder = PLACEHOLDER_LOADING
    elif state is ViewState.ERROR:
        vm.placeholder = f"Error: {error_message}"
    else:
        if report is None:
            raise ValueError("LOADED view requires a report")
        expansion = expansion if expansion is not None else ExpansionState()
        vm.summary = render_summary(report)
        vm.rows = [render_row(u, expansion) for u in units]
        vm.unit_count = len(report.units)

    return vm
