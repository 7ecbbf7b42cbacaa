# Agent - Status Snapshot
#
# The running agent persists a JSON snapshot of its status so that a
# separate `status` invocation can report on it. The file exists only
# while the agent is running.

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from ..exceptions import StatusReadError

logger = logging.getLogger(__name__)


class StatusStore:
    """JSON file holding the latest AgentStatus snapshot."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, status: Dict[str, Any]) -> None:
        """Replace the snapshot atomically (write temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(status, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        """Remove the snapshot. A missing file is not an error."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def read(self) -> Optional[Dict[str, Any]]:
        """Return the snapshot, or None when the agent is not running.

        Raises:
            StatusReadError: the file exists but is unreadable or corrupt.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StatusReadError(f"Could not read {self.path}: {e}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StatusReadError(f"Corrupt status file {self.path}: {e}") from e
