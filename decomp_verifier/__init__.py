"""
Decomp Verifier
===============
Runs objdiff-cli against a decompilation project and shows, per object file
and per function, whether the rebuilt code matches the original binary.

The GUI lives in `decomp_verifier.app`; everything else is importable
without imgui.
"""

from .acquisition import ReportAcquirer, parse_report
from .errors import MalformedReport, ReportError, ToolExecutionFailed, ToolNotConfigured
from .model import Report, Symbol, Unit
from .session import ReportSession
from .toolchain import ToolchainSettings, ToolRun
from .view import ExpansionState, SortDirection, SortKey, ViewModel, ViewState, derive_view, render

__version__ = "0.1.0"
