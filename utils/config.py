"""Application configuration utilities."""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import os
import tempfile

from dotenv import load_dotenv


load_dotenv()


STORE_BACKENDS = ("memory", "sqlalchemy")


@dataclass(frozen=True)
class OpenAISettings:
    default_model: str = "gpt-4o"
    timeout_seconds: float = 300.0


@dataclass(frozen=True)
class GitHubSettings:
    api_url: str = "https://api.github.com"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class GitSettings:
    author_name: str = "CodeConverter"
    author_email: str = "codeconverter@users.noreply.github.com"
    timeout_seconds: float = 600.0


@dataclass(frozen=True)
class AppConfig:
    work_dir: str
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    git: GitSettings = field(default_factory=GitSettings)
    store_backend: str = "sqlalchemy"
    database_url: str = "sqlite:///codeconverter.db"
    allowed_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    store_backend = os.getenv("CONVERSION_STORE", "sqlalchemy").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise ValueError(
            f"Invalid CONVERSION_STORE '{store_backend}'. "
            f"Must be one of: {', '.join(STORE_BACKENDS)}"
        )

    return AppConfig(
        work_dir=os.getenv(
            "WORK_DIR", os.path.join(tempfile.gettempdir(), "code-converter")
        ),
        openai=OpenAISettings(
            default_model=os.getenv("DEFAULT_MODEL", "gpt-4o"),
            timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "300")),
        ),
        github=GitHubSettings(
            api_url=os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
            timeout_seconds=float(os.getenv("GITHUB_TIMEOUT_SECONDS", "30")),
        ),
        git=GitSettings(
            author_name=os.getenv("GIT_AUTHOR_NAME", "CodeConverter"),
            author_email=os.getenv(
                "GIT_AUTHOR_EMAIL", "codeconverter@users.noreply.github.com"
            ),
            timeout_seconds=float(os.getenv("GIT_TIMEOUT_SECONDS", "600")),
        ),
        store_backend=store_backend,
        database_url=os.getenv("DATABASE_URL", "sqlite:///codeconverter.db"),
        allowed_origins=tuple(
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
        ),
    )
