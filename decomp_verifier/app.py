"""
ImGui front-end
===============
Two views over the same report engine, plus settings:

- Dashboard: compact panel with progress and the mismatch table
- Verification Report: the full page with summary, filter and sortable table
- Settings: objdiff-cli / project paths and the objdiff-cli downloader

Each view builds its own ReportSession when its tab is opened and closes it
when the user switches away.
"""

import logging
import sys
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

import glfw
import OpenGL.GL as gl
import imgui
import requests
from imgui.integrations.glfw import GlfwRenderer

from .acquisition import ReportAcquirer
from .session import ReportSession
from .toolchain import (
    OBJDIFF_VERSION,
    ToolchainSettings,
    download_comparison_tool,
    locate_comparison_tool,
)
from .view import SortDirection, SortKey, UnitRow, ViewModel, ViewState, use_user_locale


logger = logging.getLogger(__name__)


COLOR_ERROR = (1.0, 0.35, 0.35, 1.0)
COLOR_MISMATCH = (1.0, 0.6, 0.3, 1.0)
COLOR_MATCHED = (0.3, 1.0, 0.3, 1.0)
COLOR_DIM = (0.6, 0.6, 0.6, 1.0)
COLOR_SYMBOL = (0.5, 0.8, 1.0, 1.0)

SORT_COLUMNS = [(SortKey.NAME, "Unit"), (SortKey.MATCH_PERCENT, "Match %")]


# =============================================================================
# Shared drawing
# =============================================================================

def _header_label(title: str, key: SortKey, vm: ViewModel) -> str:
    if vm.sort_key is not key:
        return title
    arrow = "^" if vm.sort_direction is SortDirection.ASCENDING else "v"
    return f"{title} {arrow}"


def draw_placeholder(vm: ViewModel) -> None:
    if vm.state is ViewState.ERROR:
        imgui.text_colored(vm.placeholder, *COLOR_ERROR)
    else:
        imgui.text_colored(vm.placeholder, *COLOR_DIM)


def draw_run_button(session: ReportSession, vm: ViewModel, width: int = 220) -> None:
    # While loading the button is replaced, so a second click cannot queue a run
    if vm.run_enabled:
        if imgui.button("Run Verification Report", width=width):
            session.start_report()
    else:
        imgui.text_colored("Running...", *COLOR_DIM)


def draw_filter(session: ReportSession, vm: ViewModel, widget_id: str) -> None:
    imgui.text("Filter:")
    imgui.same_line()
    changed, query = imgui.input_text(f"##{widget_id}_filter", vm.filter_query, 256)
    if changed:
        session.set_filter(query)
    imgui.same_line()
    imgui.text_colored(f"Showing {vm.shown_count} of {vm.unit_count} units", *COLOR_DIM)


def draw_unit_row(session: ReportSession, row: UnitRow, widget_id: str) -> None:
    imgui.columns(3, f"{widget_id}_row_{row.name}")
    if row.expandable:
        marker = "-" if row.expanded else "+"
        imgui.push_style_color(imgui.COLOR_TEXT, *COLOR_MISMATCH)
        clicked, _ = imgui.selectable(f"{marker} {row.name}##{widget_id}", row.expanded)
        imgui.pop_style_color()
        if clicked:
            session.toggle_expansion(row.name)
    else:
        imgui.text(f"  {row.name}")
    imgui.next_column()
    imgui.text(row.match_text)
    imgui.next_column()
    if row.is_mismatch:
        imgui.text_colored(row.status, *COLOR_MISMATCH)
    else:
        imgui.text_colored(row.status, *COLOR_MATCHED)
    imgui.columns(1)

    if row.expanded:
        imgui.indent(24)
        imgui.text("Mismatched Functions")
        if not row.details:
            imgui.text_colored("(no symbol breakdown)", *COLOR_DIM)
        for detail in row.details:
            imgui.text_colored(
                f"{detail.name} - {detail.match_text} ({detail.size_text})",
                *COLOR_SYMBOL,
            )
        imgui.unindent(24)
    imgui.separator()


def draw_table(session: ReportSession, vm: ViewModel, widget_id: str) -> None:
    imgui.begin_child(f"{widget_id}_table", 0, 0, border=True)

    imgui.columns(3, f"{widget_id}_header")
    for key, title in SORT_COLUMNS:
        clicked, _ = imgui.selectable(f"{_header_label(title, key, vm)}##{widget_id}_{key.value}")
        if clicked:
            session.set_sort(key)
        imgui.next_column()
    imgui.text("Status")
    imgui.columns(1)
    imgui.separator()

    for row in vm.rows:
        draw_unit_row(session, row, widget_id)

    imgui.end_child()


# =============================================================================
# Views
# =============================================================================

class ReportView(ABC):
    """Base for pages that own a ReportSession while their tab is open."""

    title = ""
    widget_id = ""

    def __init__(self, session_factory: Callable[[], ReportSession]):
        self.session_factory = session_factory
        self.session: Optional[ReportSession] = None

    def enter(self) -> None:
        if self.session is None:
            self.session = self.session_factory()

    def leave(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None

    def render(self) -> None:
        self.enter()
        self.session.poll()
        self.draw(self.session, self.session.get_view_model())

    @abstractmethod
    def draw(self, session: ReportSession, vm: ViewModel) -> None:
        ...


class ReportPage(ReportView):
    """Full verification report."""

    title = "Verification Report"
    widget_id = "report"

    def draw(self, session: ReportSession, vm: ViewModel) -> None:
        imgui.text("Compare the rebuilt objects against the original binary")
        imgui.separator()

        draw_run_button(session, vm)
        imgui.separator()

        if not vm.controls_visible:
            draw_placeholder(vm)
            return

        summary = vm.summary
        imgui.text(f"Overall progress: {summary.progress_text}")
        imgui.progress_bar(summary.progress_fraction, (-1, 0), summary.progress_text)
        imgui.text(f"Matched objects: {summary.objects_text}")
        imgui.text_colored(f"Generated: {summary.timestamp_text}", *COLOR_DIM)
        imgui.separator()

        draw_filter(session, vm, self.widget_id)
        draw_table(session, vm, self.widget_id)


class DashboardPanel(ReportView):
    """Compact report embedded in the dashboard."""

    title = "Dashboard"
    widget_id = "dashboard"

    def __init__(self, session_factory: Callable[[], ReportSession], settings: ToolchainSettings):
        super().__init__(session_factory)
        self.settings = settings

    def draw(self, session: ReportSession, vm: ViewModel) -> None:
        project = self.settings.project_path or "(not set)"
        imgui.text(f"Project: {project}")
        draw_run_button(session, vm, width=180)
        if vm.controls_visible:
            imgui.same_line()
            summary = vm.summary
            imgui.text(f"{summary.progress_text}  ({summary.objects_text} objects)")
            imgui.progress_bar(summary.progress_fraction, (-1, 0))
        imgui.separator()

        if not vm.controls_visible:
            draw_placeholder(vm)
            return

        draw_filter(session, vm, self.widget_id)
        draw_table(session, vm, self.widget_id)


class SettingsTab:
    """Edit tool/project paths and fetch objdiff-cli."""

    title = "Settings"

    def __init__(self, settings: ToolchainSettings, set_status: Callable[[str], None]):
        self.settings = settings
        self.set_status = set_status
        self.objdiff_path = settings.objdiff_path
        self.project_path = settings.project_path
        self.download_pct = 0
        self._executor: Optional[ThreadPoolExecutor] = None
        self._download: Optional[Future] = None

    def _on_progress(self, pct: int) -> None:
        # Called from the download thread; a plain int store
        self.download_pct = pct

    def _start_download(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="download")
        self.download_pct = 0
        self._download = self._executor.submit(
            download_comparison_tool, Path(self.project_path), self._on_progress
        )

    def _poll_download(self) -> None:
        if self._download is None or not self._download.done():
            return
        future, self._download = self._download, None
        try:
            path = future.result()
        except (requests.RequestException, OSError) as e:
            logger.error("objdiff-cli download failed: %s", e)
            self.set_status(f"Failed to download objdiff-cli: {e}")
            return
        self.objdiff_path = str(path)
        self.settings.objdiff_path = self.objdiff_path
        self.settings.save()
        self.set_status(f"Downloaded objdiff-cli to {path}")

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def render(self) -> None:
        self._poll_download()

        imgui.text("Toolchain")
        imgui.separator()

        imgui.text("Project folder (where objdiff.json lives):")
        _, self.project_path = imgui.input_text("##project_path", self.project_path, 512)

        imgui.text("objdiff-cli path (leave empty to auto-detect):")
        _, self.objdiff_path = imgui.input_text("##objdiff_path", self.objdiff_path, 512)

        if imgui.button("Save", width=120):
            self.settings.project_path = self.project_path.strip()
            self.settings.objdiff_path = self.objdiff_path.strip()
            self.settings.save()
            self.set_status("Settings saved")

        imgui.separator()
        located = locate_comparison_tool(self.settings)
        if located:
            imgui.text_colored(f"Using objdiff-cli: {located}", *COLOR_MATCHED)
        else:
            imgui.text_colored("objdiff-cli not found", *COLOR_ERROR)

        if self._download is not None:
            imgui.text(f"Downloading objdiff-cli {OBJDIFF_VERSION}...")
            imgui.progress_bar(self.download_pct / 100.0, (-1, 0))
        elif self.settings.project_path:
            if imgui.button(f"Download objdiff-cli {OBJDIFF_VERSION}", width=240):
                self._start_download()
            imgui.same_line()
            imgui.text_colored("(into the project folder)", *COLOR_DIM)
        else:
            imgui.text_colored("Set and save a project folder to download objdiff-cli", *COLOR_DIM)


# =============================================================================
# Application
# =============================================================================

class VerifierApp:
    """Main application class with ImGui interface."""

    def __init__(self, settings: ToolchainSettings = None):
        self.settings = settings or ToolchainSettings()
        self.status_message = "Ready"

        def new_session() -> ReportSession:
            return ReportSession(ReportAcquirer.from_settings(self.settings))

        self.dashboard = DashboardPanel(new_session, self.settings)
        self.report_page = ReportPage(new_session)
        self.settings_tab = SettingsTab(self.settings, self._set_status)
        self.active_view: Optional[ReportView] = None

    def _set_status(self, message: str) -> None:
        self.status_message = message

    def _activate(self, view: Optional[ReportView]) -> None:
        if view is self.active_view:
            return
        if self.active_view is not None:
            self.active_view.leave()
        self.active_view = view
        if view is not None:
            view.enter()

    def _update_status(self) -> None:
        if self.active_view is None or self.active_view.session is None:
            return
        session = self.active_view.session
        if session.state is ViewState.LOADING:
            self.status_message = "Running objdiff-cli..."
        elif session.state is ViewState.ERROR:
            self.status_message = "Report failed"
        elif session.state is ViewState.LOADED:
            report = session.report
            self.status_message = (
                f"Report: {len(report.units)} units, {report.mismatch_count} mismatched"
            )

    def shutdown(self) -> None:
        self._activate(None)
        self.settings_tab.shutdown()

    def render(self) -> bool:
        """Render the main application UI."""
        selected: Optional[ReportView] = None

        if imgui.begin_tab_bar("main_tabs"):
            for view in (self.dashboard, self.report_page):
                if imgui.begin_tab_item(view.title)[0]:
                    selected = view
                    self._activate(view)
                    view.render()
                    imgui.end_tab_item()

            if imgui.begin_tab_item(self.settings_tab.title)[0]:
                self.settings_tab.render()
                imgui.end_tab_item()

            imgui.end_tab_bar()

        if selected is None:
            self._activate(None)
        self._update_status()

        # Status bar
        imgui.separator()
        imgui.text(f"Status: {self.status_message}")

        return True


def main():
    """Main entry point."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not use_user_locale():
        logger.warning("Could not apply the system locale; timestamps use the C format")

    if not glfw.init():
        print("Failed to initialize GLFW")
        sys.exit(1)

    glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
    glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
    glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
    glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, gl.GL_TRUE)

    window = glfw.create_window(1024, 768, "Decomp Verifier", None, None)
    if not window:
        glfw.terminate()
        print("Failed to create window")
        sys.exit(1)

    glfw.make_context_current(window)
    glfw.swap_interval(1)

    imgui.create_context()
    impl = GlfwRenderer(window)

    app = VerifierApp()

    while not glfw.window_should_close(window):
        glfw.poll_events()
        impl.process_inputs()

        imgui.new_frame()

        # Fullscreen root surface sized to the framebuffer each frame
        w, h = glfw.get_framebuffer_size(window)
        imgui.set_next_window_position(0.0, 0.0)
        imgui.set_next_window_size(float(w), float(h))

        root_flags = (
            imgui.WINDOW_NO_TITLE_BAR |
            imgui.WINDOW_NO_RESIZE |
            imgui.WINDOW_NO_MOVE |
            imgui.WINDOW_NO_COLLAPSE |
            imgui.WINDOW_NO_SAVED_SETTINGS |
            imgui.WINDOW_NO_BRING_TO_FRONT_ON_FOCUS |
            imgui.WINDOW_NO_NAV_FOCUS
        )

        imgui.push_style_var(imgui.STYLE_WINDOW_PADDING, (0.0, 0.0))
        imgui.begin("##Root", True, root_flags)
        imgui.pop_style_var()
        keep_running = app.render()
        imgui.end()
        if not keep_running:
            break

        gl.glClearColor(0.1, 0.1, 0.1, 1.0)
        gl.glClear(gl.GL_COLOR_BUFFER_BIT)

        imgui.render()
        impl.render(imgui.get_draw_data())

        glfw.swap_buffers(window)

    app.shutdown()
    impl.shutdown()
    glfw.terminate()
