"""Configuration and shared state."""

__version__ = "0.1.0"

import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

_stderr_print = lambda *a, **kw: print(*a, **kw, file=sys.stderr)


def _env_number(name: str, default, cast=float):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        _stderr_print(f"Invalid {name}={raw!r}, falling back to {default!r}")
        return default
    if value < 0:
        _stderr_print(f"Negative {name}={raw!r}, falling back to {default!r}")
        return default
    return value


DEFAULT_CAPTION = "Here's your GMAT question! 📚"

CONFIG = {
    # Zalo Bot API
    "zalo_bot_token": os.getenv("ZALO_BOT_TOKEN", ""),
    "zalo_api_base": os.getenv("ZALO_API_BASE", "https://bot-api.zapps.vn"),
    # GitHub release asset hosting
    "github_token": os.getenv("GITHUB_TOKEN", ""),
    "github_repository": os.getenv("GITHUB_REPOSITORY", ""),
    "github_api_base": os.getenv("GITHUB_API_BASE", "https://api.github.com"),
    # GMAT question corpus
    "gmat_database_url": os.getenv(
        "GMAT_DATABASE_URL", "https://mister-teddy.github.io/gmat-database"
    ),
    # Service loop
    "service_duration_hours": _env_number("SERVICE_DURATION_HOURS", 24.0),
    "poll_timeout_seconds": _env_number("POLL_TIMEOUT_SECONDS", 30, int),
    "backoff_base_seconds": _env_number("BACKOFF_BASE_SECONDS", 5.0),
    "backoff_cap_seconds": _env_number("BACKOFF_CAP_SECONDS", 60.0),
    "resume_cursor": _env_number("RESUME_CURSOR", 0, int),
    # Rendering
    "render_timeout_seconds": _env_number("RENDER_TIMEOUT_SECONDS", 60.0),
    "wkhtmltoimage_path": os.getenv("WKHTMLTOIMAGE_PATH", "wkhtmltoimage"),
    "caption": os.getenv("BOT_CAPTION", DEFAULT_CAPTION),
}


# ── Typed config ─────────────────────────────────────────────


@dataclass
class ZaloConfig:
    bot_token: str = ""
    api_base: str = "https://bot-api.zapps.vn"


@dataclass
class GitHubConfig:
    token: str = ""
    repository: str = ""
    api_base: str = "https://api.github.com"


@dataclass
class ServiceConfig:
    duration_hours: float = 24.0
    poll_timeout_seconds: int = 30
    backoff_base_seconds: float = 5.0
    backoff_cap_seconds: float = 60.0
    resume_cursor: int = 0

    @property
    def duration_seconds(self) -> float:
        return self.duration_hours * 3600


@dataclass
class RenderConfig:
    timeout_seconds: float = 60.0
    wkhtmltoimage_path: str = "wkhtmltoimage"


@dataclass
class AppConfig:
    """Typed configuration bundle handed to the launcher."""

    caption: str = DEFAULT_CAPTION
    gmat_database_url: str = "https://mister-teddy.github.io/gmat-database"
    zalo: ZaloConfig = field(default_factory=ZaloConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def missing_settings(self) -> list:
        """Names of required environment variables that are not set."""
        missing = []
        if not self.zalo.bot_token:
            missing.append("ZALO_BOT_TOKEN")
        if not self.github.token:
            missing.append("GITHUB_TOKEN")
        if not self.github.repository:
            missing.append("GITHUB_REPOSITORY")
        return missing

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        return cls(
            caption=CONFIG["caption"],
            gmat_database_url=CONFIG["gmat_database_url"],
            zalo=ZaloConfig(
                bot_token=CONFIG["zalo_bot_token"],
                api_base=CONFIG["zalo_api_base"],
            ),
            github=GitHubConfig(
                token=CONFIG["github_token"],
                repository=CONFIG["github_repository"],
                api_base=CONFIG["github_api_base"],
            ),
            service=ServiceConfig(
                duration_hours=CONFIG["service_duration_hours"],
                poll_timeout_seconds=CONFIG["poll_timeout_seconds"],
                backoff_base_seconds=CONFIG["backoff_base_seconds"],
                backoff_cap_seconds=CONFIG["backoff_cap_seconds"],
                resume_cursor=CONFIG["resume_cursor"],
            ),
            render=RenderConfig(
                timeout_seconds=CONFIG["render_timeout_seconds"],
                wkhtmltoimage_path=CONFIG["wkhtmltoimage_path"],
            ),
        )
