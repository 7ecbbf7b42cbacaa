# Guardian - Process Detection
#
# Polls the host for interactive processes (those owning a window with a
# non-empty title) and matches each one against the signature catalog.
#
# The host query is a fail-soft boundary: if the process list cannot be
# read, the cycle sees zero processes instead of an error.

import json
import logging
import shutil
import subprocess
import sys
from typing import Callable, List, Optional

import psutil

from ..exceptions import ProcessQueryFailed
from ..models import Match, ObservedProcess
from .signatures import SignatureCatalog

logger = logging.getLogger(__name__)

# Fixed confidence for the process-name AND window-title strategy
PROCESS_MATCH_CONFIDENCE = 0.9
MATCH_TYPE_PROCESS = "process"

QUERY_TIMEOUT = 15  # seconds

_POWERSHELL_QUERY = (
    "Get-Process | Select-Object Id, ProcessName, MainWindowTitle | "
    "Where-Object { $_.MainWindowTitle -ne '' } | "
    "ConvertTo-Json -Depth 2"
)


# ── Host queries ────────────────────────────────────────────────────


def _run(command: List[str]) -> str:
    try:
        result = subprocess.run(
            command,
            capture_output=True, text=True, timeout=QUERY_TIMEOUT,
            creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
        )
    except FileNotFoundError:
        raise ProcessQueryFailed(f"{command[0]} is not available") from None
    except subprocess.TimeoutExpired:
        raise ProcessQueryFailed(f"{command[0]} timed out after {QUERY_TIMEOUT}s") from None
    if result.returncode != 0:
        raise ProcessQueryFailed(
            f"{command[0]} exited with {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout


def parse_powershell_processes(output: str) -> List[ObservedProcess]:
    """Parse ``ConvertTo-Json`` output (a single object or a list)."""
    if not output.strip():
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ProcessQueryFailed(f"Unparseable process list: {e}") from None

    entries = data if isinstance(data, list) else [data]
    processes = []
    for entry in entries:
        title = entry.get("MainWindowTitle") or ""
        if not title:
            continue
        processes.append(ObservedProcess(
            id=int(entry["Id"]),
            name=entry.get("ProcessName") or "",
            window_title=title,
        ))
    return processes


def parse_wmctrl_windows(output: str) -> List[ObservedProcess]:
    """Parse ``wmctrl -lp`` output: ``<wid> <desktop> <pid> <host> <title>``."""
    processes = []
    for line in output.splitlines():
        parts = line.split(None, 4)
        if len(parts) < 5:
            continue
        title = parts[4].strip()
        try:
            pid = int(parts[2])
        except ValueError:
            continue
        if not title or pid <= 0:
            continue
        try:
            name = psutil.Process(pid).name()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        processes.append(ObservedProcess(id=pid, name=name, window_title=title))
    return processes


def query_windowed_processes() -> List[ObservedProcess]:
    """Return processes that own a window with a non-empty title.

    Raises:
        ProcessQueryFailed: the host could not be queried.
    """
    if sys.platform == "win32":
        output = _run(["powershell", "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_QUERY])
        return parse_powershell_processes(output)

    if shutil.which("wmctrl") is None:
        raise ProcessQueryFailed("wmctrl is required to read window titles on this platform")
    return parse_wmctrl_windows(_run(["wmctrl", "-lp"]))


# ── Detector ────────────────────────────────────────────────────────


class ProcessDetector:
    """
    Matches interactive host processes against the AI tool catalog.

    ``is_running`` is a status flag only; whether polling happens is
    decided by the agent orchestrator.
    """

    def __init__(
        self,
        catalog: Optional[SignatureCatalog] = None,
        query: Optional[Callable[[], List[ObservedProcess]]] = None,
    ):
        self.catalog = catalog or SignatureCatalog()
        self._query = query or query_windowed_processes
        self.is_running = False

    def start(self):
        self.is_running = True
        logger.info("Process detection started (%d signatures)", len(self.catalog))

    def stop(self):
        self.is_running = False
        logger.info("Process detection stopped")

    def list_processes(self) -> List[ObservedProcess]:
        """Current interactive processes; empty on any query failure."""
        try:
            processes = self._query()
        except Exception as e:
            logger.error("Failed to get processes: %s", e)
            return []
        return [p for p in processes if p.window_title]

    def match(self, process: ObservedProcess) -> Optional[Match]:
        """Return the first catalog signature matching both name and title."""
        for signature in self.catalog:
            process_match = signature.matches_process_name(process.name)
            title_match = signature.matches_window_title(process.window_title)

            if process_match and title_match:
                return Match(
                    signature=signature,
                    confidence=PROCESS_MATCH_CONFIDENCE,
                    match_type=MATCH_TYPE_PROCESS,
                    match_details={
                        "process_match": process_match,
                        "title_match": title_match,
                    },
                )
        return None
