# src/awm/config.py

"""Settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings value built at the composition root and passed down explicitly.
- No secrets required at import time.
- The scheduling core only sees WorkConfig, never the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .core.durations import parse_duration
from .tasks.overdue import DEFAULT_OVERDUE_THRESHOLD

ENV_PREFIX = "AWM"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class WorkConfig:
    """Knobs the scheduling core honours. Passed explicitly into WorkManager / WakeEngine."""

    default_status_interval: str = "15m"
    overdue_threshold: float = DEFAULT_OVERDUE_THRESHOLD
    idle_threshold: str = "30m"
    cli_command: str = "awm"

    def validate(self) -> WorkConfig:
        """Fail fast on malformed literals supplied by configuration (raises InvalidDuration)."""
        parse_duration(self.default_status_interval)
        parse_duration(self.idle_threshold)
        if self.overdue_threshold <= 0:
            raise ValueError(f"overdue_threshold must be positive, got {self.overdue_threshold}")
        return self


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path

    # ---- Scheduling ----
    default_status_interval: str
    overdue_threshold: float
    idle_threshold: str
    cli_command: str

    # ---- Wake runner ----
    dry_run: bool
    run_once: bool
    tick_interval_seconds: float

    # ---- Silent channel (agent gateway) ----
    gateway_url: str
    gateway_token: str

    # ---- Visible channel (Matrix) ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    wake_state_path: Path
    channel_map_path: Path
    matrix_store_path: Path

    @staticmethod
    def from_env() -> Settings:
        _load_dotenv_if_available()

        app_name = _env(_k("APP_NAME"), "awm")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        default_status_interval = _env(_k("DEFAULT_STATUS_INTERVAL"), "15m").strip()
        overdue_threshold = _env_float(_k("OVERDUE_THRESHOLD"), DEFAULT_OVERDUE_THRESHOLD)
        idle_threshold = _env(_k("IDLE_THRESHOLD"), "30m").strip()
        cli_command = _env(_k("CLI_COMMAND"), "awm").strip() or "awm"

        dry_run = _env_bool(_k("DRY_RUN"), False)
        run_once = _env_bool(_k("RUN_ONCE"), True)
        tick_interval_seconds = _env_float(_k("TICK_INTERVAL_SECONDS"), 60.0)

        gateway_url = _env(_k("GATEWAY_URL"), "http://localhost:18789").strip()
        # The gateway token is commonly shared with the agent runtime, accept its name too.
        gateway_token = (_first_env(_k("GATEWAY_TOKEN"), "GATEWAY_TOKEN", default="") or "").strip()

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/awm"))
        log_dir = _env_path(_k("LOG_DIR"), data_dir)
        db_path = _env_path(_k("DB_PATH"), data_dir / "awm.sqlite3")
        wake_state_path = _env_path(_k("WAKE_STATE_PATH"), data_dir / "wake_state.json")
        channel_map_path = _env_path(_k("CHANNEL_MAP_PATH"), data_dir / "channels.json")
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            log_dir=log_dir,
            default_status_interval=default_status_interval,
            overdue_threshold=overdue_threshold,
            idle_threshold=idle_threshold,
            cli_command=cli_command,
            dry_run=dry_run,
            run_once=run_once,
            tick_interval_seconds=tick_interval_seconds,
            gateway_url=gateway_url,
            gateway_token=gateway_token,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            data_dir=data_dir,
            db_path=db_path,
            wake_state_path=wake_state_path,
            channel_map_path=channel_map_path,
            matrix_store_path=matrix_store_path,
        )

    def work_config(self) -> WorkConfig:
        return WorkConfig(
            default_status_interval=self.default_status_interval,
            overdue_threshold=self.overdue_threshold,
            idle_threshold=self.idle_threshold,
            cli_command=self.cli_command,
        ).validate()


def get_settings() -> Settings:
    """Read settings from the environment. Called once by the entrypoint."""
    return Settings.from_env()
