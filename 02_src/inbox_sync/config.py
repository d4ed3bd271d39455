"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"


PathLike = Union[str, Path]


def resolve_log_path(env_value: PathLike | None = None) -> Path:
    """Resolve LOG_FILE to an absolute path."""
    if not env_value:
        return DEFAULT_LOG_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass
class Settings:
    """Runtime settings for the conversation core.

    Timings are in seconds. Tests shrink them to keep timer-driven
    behaviour fast.
    """

    api_url: str = "http://localhost:5000/api"
    api_prefix: str = "buyer/inbox"
    ws_url: str = "ws://localhost:5000/ws"
    auth_token: str = ""

    user_id: str = ""
    user_role: str = "buyer"
    user_name: str = "You"

    max_attachments: int = 5
    upload_wait_timeout: float = 10.0

    typing_debounce: float = 0.4
    recording_tick: float = 1.0
    indicator_linger: float = 0.5
    remote_typing_timeout: float = 3.0
    remote_recording_timeout: float = 10.0

    self_test_timeout: float = 3.0
    autoplay_transition: float = 0.15

    reconnect_delay: float = 1.0
    max_reconnect_attempts: int = 5
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        defaults = cls()
        return cls(
            api_url=os.getenv("INBOX_API_URL", defaults.api_url),
            api_prefix=os.getenv("INBOX_API_PREFIX", defaults.api_prefix),
            ws_url=os.getenv("INBOX_WS_URL", defaults.ws_url),
            auth_token=os.getenv("INBOX_AUTH_TOKEN", defaults.auth_token),
            user_id=os.getenv("INBOX_USER_ID", defaults.user_id),
            user_role=os.getenv("INBOX_USER_ROLE", defaults.user_role),
            user_name=os.getenv("INBOX_USER_NAME", defaults.user_name),
            max_attachments=_env_int("MAX_ATTACHMENTS", defaults.max_attachments),
            upload_wait_timeout=_env_float(
                "UPLOAD_WAIT_TIMEOUT", defaults.upload_wait_timeout
            ),
            reconnect_delay=_env_float("RECONNECT_DELAY", defaults.reconnect_delay),
            max_reconnect_attempts=_env_int(
                "MAX_RECONNECT_ATTEMPTS", defaults.max_reconnect_attempts
            ),
        )
