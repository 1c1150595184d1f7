"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_project_root() -> Path:
    """
    Find the project root directory.
    Works whether running from backend/ or project root.
    """
    cwd = Path.cwd()
    if cwd.name == "backend" and (cwd.parent / "pyproject.toml").exists():
        return cwd.parent
    return cwd


def resolve_database_path(db_url: str, project_root: Path) -> str:
    """
    Resolve a relative SQLite database URL against the project root.
    Non-SQLite URLs are returned unchanged.
    """
    if not db_url.startswith("sqlite") or ":memory:" in db_url:
        return db_url

    # Format: sqlite+aiosqlite:///path or sqlite:///path
    prefix_end = db_url.find(":///") + 4
    prefix = db_url[:prefix_end]
    path = db_url[prefix_end:]

    if not path.startswith("/"):
        clean_path = path[2:] if path.startswith("./") else path
        return f"{prefix}{project_root / clean_path}"

    return db_url


_project_root = get_project_root()

_env_file = _project_root / ".env"
if not _env_file.exists():
    _env_file = Path(".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM gateway (OpenAI-compatible chat completions)
    llm_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    llm_gateway_api_key: str = ""
    model_buddy_chat: str = "google/gemini-2.5-flash"
    model_task_simplifier: str = "google/gemini-2.5-flash"

    # Gateway retry behaviour: total attempts, delays are base * 2**n seconds
    gateway_max_attempts: int = 3
    gateway_backoff_base_seconds: float = 1.0

    # Weakness detection: "keywords" (fixed rule set) or "model" (Claude)
    weakness_classifier: Literal["keywords", "model"] = "keywords"
    anthropic_api_key: str = ""
    model_weakness_classifier: str = "claude-haiku-4-5"

    # Database - stored at project root ./data/
    database_url: str = f"sqlite+aiosqlite:///{_project_root}/data/lernbuddy.db"

    def __init__(self, **data):
        super().__init__(**data)
        resolved_db = resolve_database_path(self.database_url, _project_root)
        object.__setattr__(self, "database_url", resolved_db)

    # Learner defaults
    default_grade_level: int = 5

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8080"]


settings = Settings()
