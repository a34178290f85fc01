"""
Bot configuration and the CLI settings file.
"""

import json
import platform
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".wabot" / "config.json"
DEFAULT_PROFILE_PICTURE = "https://i.pinimg.com/736x/62/01/0d/62010d848b790a2336d1542fcda51789.jpg"


def default_browser() -> tuple[str, str, str]:
    """Device description announced to the server: (platform, browser, release)."""
    return (sys.platform, "Firefox", platform.release())


class BotConfig(BaseModel):
    prefix: str = Field(default="!/", min_length=1)
    browser: tuple[str, str, str] = Field(default_factory=default_browser)
    qr_timeout_ms: int = 60_000
    connect_timeout_ms: int = 60_000
    mark_online_on_connect: bool = True
    sync_full_history: bool = False
    generate_high_quality_link_preview: bool = True
    link_preview_thumbnail_width: int = 1_980
    # Retry pacing for the close-code table; there is no retry ceiling.
    reconnect_delay: float = 5.0
    overload_delay: float = 30.0
    default_profile_picture: str = DEFAULT_PROFILE_PICTURE


def load_config(path: Path = CONFIG_FILE) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def save_config(cfg: dict[str, Any], path: Path = CONFIG_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))
