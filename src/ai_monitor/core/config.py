# AI Monitor - Agent Configuration
#
# Precedence (lowest to highest):
#   built-in defaults -> JSON config file -> environment (.env honoured)

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..exceptions import InvalidConfiguration
from ..models import Decision

logger = logging.getLogger(__name__)

STATUS_FILE_NAME = "agent-status.json"

ENV_PREFIX = "AI_MONITOR_"
ENV_CONFIG_PATH = "AI_MONITOR_CONFIG"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def default_data_dir() -> Path:
    """Per-user data directory (%LOCALAPPDATA%\\AIMonitor or ~/.ai-monitor)."""
    local = os.environ.get("LOCALAPPDATA")
    if local:
        return Path(local) / "AIMonitor"
    return Path(os.path.expanduser("~")) / ".ai-monitor"


@dataclass
class AgentConfig:
    """Runtime settings for the monitoring agent.

    Intervals are in seconds.
    """

    poll_interval: float = 5.0
    status_interval: float = 30.0
    default_action: str = Decision.PROMPT.value
    prompt_timeout: float = 120.0
    terminate_on_block: bool = True
    data_dir: Path = field(default_factory=default_data_dir)
    status_file: Optional[Path] = None
    log_dir: Optional[Path] = None

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.status_file is None:
            self.status_file = self.data_dir / STATUS_FILE_NAME
        if self.log_dir is None:
            self.log_dir = self.data_dir / "audit_logs"
        self.status_file = Path(self.status_file)
        self.log_dir = Path(self.log_dir)
        self.validate()

    def validate(self) -> None:
        if self.poll_interval <= 0:
            raise InvalidConfiguration(f"poll_interval must be positive, got {self.poll_interval}")
        if self.status_interval <= 0:
            raise InvalidConfiguration(f"status_interval must be positive, got {self.status_interval}")
        if self.prompt_timeout <= 0:
            raise InvalidConfiguration(f"prompt_timeout must be positive, got {self.prompt_timeout}")
        try:
            self.default_action = Decision.from_string(str(self.default_action)).value
        except ValueError:
            raise InvalidConfiguration(
                f"default_action must be one of allow/block/prompt, got {self.default_action!r}"
            ) from None


def _coerce(name: str, raw: Any, current: Any) -> Any:
    """Convert a file/env value to the type of the field's current value."""
    try:
        if isinstance(current, bool):
            if isinstance(raw, bool):
                return raw
            value = str(raw).strip().lower()
            if value in _TRUE_VALUES:
                return True
            if value in _FALSE_VALUES:
                return False
            raise ValueError(raw)
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, Path) or name in ("status_file", "log_dir"):
            return Path(os.path.expanduser(str(raw)))
        return str(raw)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"Invalid value for {name}: {raw!r}") from None


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise InvalidConfiguration(f"Config file not found: {path}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidConfiguration(f"Could not read config {path}: {e}") from None
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Config {path} must contain a JSON object")
    return data


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> AgentConfig:
    """Build the agent configuration.

    Args:
        path: Optional JSON config file. Falls back to $AI_MONITOR_CONFIG.
        environ: Environment mapping (defaults to ``os.environ`` after
            loading a ``.env`` file from the working directory).
    """
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    # Collect overrides first so data_dir-derived paths are resolved once,
    # after every source has been applied.
    overrides: Dict[str, Any] = {}
    probe = AgentConfig()
    known = {f.name: getattr(probe, f.name) for f in fields(AgentConfig)}

    config_path = path or environ.get(ENV_CONFIG_PATH)
    if config_path:
        for key, raw in _read_config_file(Path(config_path)).items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            overrides[key] = _coerce(key, raw, known[key])
        logger.info("Loaded config from %s", config_path)

    for name, current in known.items():
        env_key = ENV_PREFIX + name.upper()
        if env_key in environ and environ[env_key] != "":
            overrides[name] = _coerce(name, environ[env_key], current)

    # Derived paths follow data_dir unless explicitly overridden.
    if "data_dir" in overrides:
        overrides.setdefault("status_file", None)
        overrides.setdefault("log_dir", None)

    return replace(probe, **overrides) if overrides else probe
