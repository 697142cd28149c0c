from __future__ import annotations

import logging
from types import SimpleNamespace
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib  # Python 3.11+
except Exception:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from platformdirs import PlatformDirs

log = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"
APP_NAME = "CTips"
APP_AUTHOR = "CTips"

# Embedded default config as a safe fallback when running from a single-file bundle
_DEFAULT_CONFIG_TOML = b"""
[app]
url = "ws://localhost:8080/notice"
machine_id = ""
origin_prefix = "rumbladeApp"
uuid_prefix = "ctips"
ping_interval_seconds = 15
liveness_window_seconds = 30
blink_interval_ms = 500
toast_timeout_ms = 300000
play_sound = true
sound_file = ""
keep_history = true
history_limit = 500
theme = "auto"
log_level = "WARNING"
"""


def _load_from_path(p: Path) -> Dict[str, Any]:
    with p.open("rb") as f:
        return tomllib.load(f)


def data_dir() -> Path:
    """User data folder holding config.toml, the history database and the log file."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=False)
    p = Path(dirs.user_data_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _candidate_config_paths() -> list[Path]:
    """Return likely config paths in decreasing priority for default lookup (excluding data folder)."""
    candidates: list[Path] = []
    # Project root (development runs)
    try:
        dev_root = Path(__file__).resolve().parents[2]
        candidates.append(dev_root / CONFIG_FILENAME)
    except Exception:
        pass
    return candidates


def _write_default_to(path: Path) -> None:
    path.write_bytes(_DEFAULT_CONFIG_TOML)
    log.info("Created default config at %s", path)


def load_config(path: Optional[Path | str] = None) -> SimpleNamespace:
    """Load configuration into a SimpleNamespace.

    Behavior:
    - If an explicit `path` is provided and the file doesn't exist, raise FileNotFoundError.
    - If `path` is None, prefer the user data folder; if no config exists there, seed it from
      the project root or the embedded defaults and load it.
    """
    data: Dict[str, Any]

    if path is not None:
        cfg_path = Path(path)
        if not cfg_path.exists():
            raise FileNotFoundError(f"Config file not found at {cfg_path}")
        data = _load_from_path(cfg_path)
    else:
        user_cfg = data_dir() / CONFIG_FILENAME
        if not user_cfg.exists():
            seeded = False
            for cand in _candidate_config_paths():
                try:
                    if cand.exists():
                        user_cfg.write_bytes(Path(cand).read_bytes())
                        log.info("Copied default config from %s to %s", cand, user_cfg)
                        seeded = True
                        break
                except Exception:
                    continue
            if not seeded:
                _write_default_to(user_cfg)
        data = _load_from_path(user_cfg)

    # Minimal validation and defaults
    app = data.get("app", {})
    url = str(app.get("url", "")).strip()
    machine_id = str(app.get("machine_id", "")).strip()
    origin_prefix = str(app.get("origin_prefix", "rumbladeApp"))
    uuid_prefix = str(app.get("uuid_prefix", "ctips"))
    ping_interval_seconds = max(1, int(app.get("ping_interval_seconds", 15)))
    liveness_window_seconds = max(1, int(app.get("liveness_window_seconds", 30)))
    blink_interval_ms = max(50, int(app.get("blink_interval_ms", 500)))
    toast_timeout_ms = int(app.get("toast_timeout_ms", 300_000))
    play_sound = bool(app.get("play_sound", True))
    sound_file = str(app.get("sound_file", ""))
    keep_history = bool(app.get("keep_history", True))
    history_limit = int(app.get("history_limit", 500))
    theme = str(app.get("theme", "auto"))
    log_level = str(app.get("log_level", "INFO")).upper()

    if liveness_window_seconds <= ping_interval_seconds:
        log.warning(
            "liveness_window_seconds (%s) <= ping_interval_seconds (%s): every heartbeat will reconnect",
            liveness_window_seconds, ping_interval_seconds,
        )

    ns = SimpleNamespace(
        app=SimpleNamespace(
            url=url,
            machine_id=machine_id,
            origin_prefix=origin_prefix,
            uuid_prefix=uuid_prefix,
            ping_interval_seconds=ping_interval_seconds,
            liveness_window_seconds=liveness_window_seconds,
            blink_interval_ms=blink_interval_ms,
            toast_timeout_ms=toast_timeout_ms,
            play_sound=play_sound,
            sound_file=sound_file,
            keep_history=keep_history,
            history_limit=history_limit,
            theme=theme,
            log_level=log_level,
        )
    )
    log.debug(
        "Loaded config: url=%s, machine_id=%s, ping=%ss, window=%ss, blink=%sms, play_sound=%s, keep_history=%s, log_level=%s",
        url, machine_id or "<hardware>", ping_interval_seconds, liveness_window_seconds, blink_interval_ms, play_sound, keep_history, log_level,
    )
    return ns
