"""
Report session
==============
The object a front-end talks to. It owns the live report and every piece of
view state derived from it, and exposes the operations a page needs:
run_report / start_report + poll, set_filter, set_sort, toggle_expansion
and get_view_model.

All methods are meant to be called from the UI thread. start_report() hands
the slow objdiff-cli call to a single worker thread; poll() picks up the
result on the next frame.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .acquisition import ReportAcquirer
from .errors import ReportError
from .model import Report, Unit
from .view import (
    DEFAULT_SORT_DIRECTION,
    DEFAULT_SORT_KEY,
    ExpansionState,
    SortKey,
    ViewModel,
    ViewState,
    filter_units,
    next_sort,
    render,
    sort_units,
)


logger = logging.getLogger(__name__)


class ReportSession:
    """One page's worth of report state. Create on page entry, close() on exit."""

    def __init__(self, acquirer: ReportAcquirer):
        self.acquirer = acquirer

        self.state = ViewState.NO_REPORT
        self.report: Optional[Report] = None
        self.error: Optional[ReportError] = None

        # View parameters
        self.filter_query = ""
        self.sort_key = DEFAULT_SORT_KEY
        self.sort_direction = DEFAULT_SORT_DIRECTION
        self.expansion = ExpansionState()

        # report.units in the current sort order; filtered per derivation
        self._sorted_units: list[Unit] = []

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None
        self._closed = False

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self.state is ViewState.LOADING

    def run_report(self) -> bool:
        """
        Acquire a report on the calling thread.

        Returns False without doing anything if a run is already in flight.
        """
        if self.is_loading or self._closed:
            return False
        self.state = ViewState.LOADING
        try:
            report = self.acquirer.run_report()
        except ReportError as e:
            self._apply_error(e)
        except Exception as e:
            logger.exception("Report run crashed")
            self._apply_error(ReportError(f"Unexpected error: {e}"))
        else:
            self._apply_report(report)
        return True

    def start_report(self) -> bool:
        """Kick off acquisition in the background. Returns False if one is running."""
        if self.is_loading or self._closed:
            return False
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="objdiff")
        self.state = ViewState.LOADING
        self._pending = self._executor.submit(self.acquirer.run_report)
        logger.debug("Report run started")
        return True

    def poll(self) -> bool:
        """Apply a finished background run. Returns True if state changed."""
        if self._pending is None or not self._pending.done():
            return False
        future, self._pending = self._pending, None
        try:
            report = future.result()
        except ReportError as e:
            self._apply_error(e)
        except Exception as e:
            logger.exception("Report run crashed")
            self._apply_error(ReportError(f"Unexpected error: {e}"))
        else:
            self._apply_report(report)
        return True

    def close(self) -> None:
        """Drop the worker. A run still in flight finishes but is ignored."""
        self._closed = True
        self._pending = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _apply_report(self, report: Report) -> None:
        self.report = report
        self.error = None
        self.filter_query = ""
        self.expansion.clear()
        self._sorted_units = sort_units(report.units, self.sort_key, self.sort_direction)
        self.state = ViewState.LOADED

    def _apply_error(self, error: ReportError) -> None:
        logger.error("Report run failed: %s", error.message)
        self.report = None
        self.error = error
        self.filter_query = ""
        self.expansion.clear()
        self._sorted_units = []
        self.state = ViewState.ERROR

    # -------------------------------------------------------------------------
    # View parameters
    # -------------------------------------------------------------------------

    def set_filter(self, query: str) -> None:
        self.filter_query = query

    def set_sort(self, key: SortKey) -> None:
        self.sort_key, self.sort_direction = next_sort(key, self.sort_key, self.sort_direction)
        # Re-sort the previous order so ties stay where they were
        self._sorted_units = sort_units(self._sorted_units, self.sort_key, self.sort_direction)

    def toggle_expansion(self, unit_name: str) -> None:
        self.expansion.toggle(unit_name)

    def visible_units(self) -> list[Unit]:
        if self.state is not ViewState.LOADED:
            return []
        return filter_units(self._sorted_units, self.filter_query)

    def get_view_model(self) -> ViewModel:
        return render(
            self.state,
            self.report,
            self.visible_units(),
            self.expansion,
            error_message=self.error.message if self.error else "",
            filter_query=self.filter_query,
            sort_key=self.sort_key,
            sort_direction=self.sort_direction,
        )

