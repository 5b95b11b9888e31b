"""
Toolchain
=========
Everything that touches the external `objdiff-cli` executable: where its
path is configured, how it is located, how it is run, and how to fetch it
from GitHub when a project does not have it yet.
"""

import json
import logging
import os
import platform
import shutil
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "decomp_verifier"

OBJDIFF_VERSION = "v2.7.1"
OBJDIFF_RELEASE_BASE = "https://github.com/encounter/objdiff/releases/download"
OBJDIFF_EXECUTABLES = ["objdiff-cli", "objdiff-cli.exe"]

# `report generate` writes the report to stdout when no output file is given
REPORT_ARGS = ["report", "generate", "--format", "json"]

DOWNLOAD_CHUNK_SIZE = 64 * 1024


# =============================================================================
# Settings Store
# =============================================================================

class ToolchainSettings:
    """
    Persists the user's tool and project paths.

    Stored as a small JSON file next to the rest of the app's config. A
    missing or unreadable file loads as empty settings.
    """

    FILENAME = "settings.json"

    def __init__(self, config_dir: Path = CONFIG_DIR):
        self.config_dir = config_dir
        self.objdiff_path = ""
        self.project_path = ""
        self._load()

    def _store_path(self) -> Path:
        return self.config_dir / self.FILENAME

    def _load(self) -> None:
        path = self._store_path()
        if not path.exists():
            return
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings at %s: %s", path, e)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring settings at %s: not a JSON object", path)
            return
        self.objdiff_path = str(data.get("objdiff_path") or "")
        self.project_path = str(data.get("project_path") or "")

    def save(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self._store_path(), "w") as f:
            json.dump(
                {"objdiff_path": self.objdiff_path, "project_path": self.project_path},
                f,
                indent=2,
            )
        logger.info("Saved settings to %s", self._store_path())

    @property
    def working_directory(self) -> Optional[Path]:
        return Path(self.project_path) if self.project_path else None


# =============================================================================
# Locate / Invoke
# =============================================================================

def locate_comparison_tool(settings: ToolchainSettings) -> Optional[Path]:
    """
    Resolve the objdiff-cli executable.

    Order: the configured path, a copy inside the project folder, then the
    system PATH. Returns None when none of them exist.
    """
    if settings.objdiff_path:
        configured = Path(settings.objdiff_path)
        if configured.is_file():
            return configured
        logger.warning("Configured objdiff-cli path does not exist: %s", configured)

    if settings.project_path:
        for name in OBJDIFF_EXECUTABLES:
            candidate = Path(settings.project_path) / name
            if candidate.is_file():
                return candidate

    for name in OBJDIFF_EXECUTABLES:
        found = shutil.which(name)
        if found:
            return Path(found)

    return None


@dataclass
class ToolRun:
    exit_code: int
    stdout: str
    stderr: str = ""


def invoke_comparison_tool(executable: Path, working_directory: Optional[Path]) -> ToolRun:
    """Run `objdiff-cli report generate` and capture its output. Blocks."""
    command = [str(executable), *REPORT_ARGS]
    logger.info("Executing: %s (cwd=%s)", " ".join(command), working_directory or os.getcwd())
    proc = subprocess.run(
        command,
        cwd=working_directory,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    return ToolRun(exit_code=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)


# =============================================================================
# Download
# =============================================================================

def release_asset_name(system: str = None, machine: str = None) -> str:
    """Name of the objdiff-cli release binary for this platform."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    arch = "aarch64" if machine in ("arm64", "aarch64") else "x86_64"
    if system == "windows":
        return f"objdiff-cli-windows-{'arm64' if arch == 'aarch64' else arch}.exe"
    if system == "darwin":
        return f"objdiff-cli-macos-{'arm64' if arch == 'aarch64' else arch}"
    return f"objdiff-cli-linux-{arch}"


def download_comparison_tool(
    dest_dir: Path,
    progress: Optional[Callable[[int], None]] = None,
    version: str = OBJDIFF_VERSION,
) -> Path:
    """
    Download objdiff-cli into `dest_dir` and return its path.

    `progress` receives whole percentages as they increase (only when the
    server sends a Content-Length). A partial file is removed on failure.
    """
    asset = release_asset_name()
    url = f"{OBJDIFF_RELEASE_BASE}/{version}/{asset}"
    dest_name = "objdiff-cli.exe" if asset.endswith(".exe") else "objdiff-cli"
    dest = Path(dest_dir) / dest_name

    logger.info("Downloading %s to %s", url, dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with requests.get(url, stream=True, timeout=30) as response:
            response.raise_for_status()
            total = int(response.headers.get("content-length") or 0)
            downloaded = 0
            last_reported = -1
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)
                    if total and progress:
                        pct = min(100, downloaded * 100 // total)
                        if pct > last_reported:
                            progress(pct)
                            last_reported = pct
    except (requests.RequestException, OSError):
        dest.unlink(missing_ok=True)
        raise

    if os.name != "nt":
        dest.chmod(dest.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    logger.info("Downloaded objdiff-cli %s (%d bytes)", version, dest.stat().st_size)
    return dest
