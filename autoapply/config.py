"""Load settings from config/settings.yaml and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from autoapply.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
USERS_PATH: Path = CONFIG_DIR / "users.yaml"
DATA_DIR: Path = ROOT_DIR / "data"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


@dataclass
class Settings:
    # Language model (any OpenAI-compatible endpoint)
    llm_api_key: str = ""
    llm_base_url: str | None = None
    llm_model: str = "gpt-4o-mini"
    ranking_model: str = "gpt-3.5-turbo"
    llm_temperature: float = 0.3

    # HeadHunter API
    hh_api_url: str = "https://api.hh.ru"
    hh_token_url: str = "https://hh.ru/oauth/token"
    hh_client_id: str = ""
    hh_client_secret: str = ""
    hh_user_agent: str = "autoapply/0.1 (autoapply@example.com)"
    vacancy_url: str = "https://hh.kz/vacancy/{id}/"
    http_timeout: float = 15.0

    # Search shaping
    search_area: int = 40
    recency_days: int = 2
    max_pages: int = 6
    resume_candidates: int = 4

    # Dispatch
    user_pool_size: int = 10
    auto_submit: bool = True

    # Trigger
    schedules: list[str] = field(default_factory=lambda: ["0 */2 * * *"])
    timezone: str = "Asia/Qyzylorda"

    # Stores
    users_path: Path = USERS_PATH
    applications_path: Path = DATA_DIR / "applications.csv"


_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "llm_api_key": ("LLM_API_KEY", "OPENAI_API_KEY"),
    "llm_base_url": ("LLM_BASE_URL",),
    "llm_model": ("LLM_MODEL",),
    "ranking_model": ("RANKING_MODEL",),
    "hh_client_id": ("HH_CLIENT_ID",),
    "hh_client_secret": ("HH_SECRET_KEY",),
    "hh_user_agent": ("HH_USER_AGENT",),
    "auto_submit": ("AUTO_SUBMIT",),
    "users_path": ("USERS_PATH",),
    "applications_path": ("APPLICATIONS_PATH",),
}


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def parse_bool(value: Any, default: bool = False) -> bool:
    """Read a YAML/env flag; quoted "false" or "0" stay false."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def _coerce(name: str, value: Any, default: Any) -> Any:
    if value is None:
        return None if name == "llm_base_url" else default
    try:
        if isinstance(default, bool):
            return parse_bool(value, default)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, Path):
            return Path(value).expanduser()
        if isinstance(default, list):
            if isinstance(value, str):
                return [value]
            return [str(v) for v in value]
        return str(value).strip()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for setting {name!r}: {value!r}") from None


def load_settings(path: Path | None = None) -> Settings:
    """Settings file values, then environment overrides, on top of defaults."""
    path = path or SETTINGS_PATH
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} must contain a mapping, got {type(data).__name__}")

    defaults = Settings()
    known = {f.name for f in fields(Settings)}
    for key in sorted(set(data) - known):
        log.warning("Ignoring unknown setting %r in %s", key, path.name)

    values: dict[str, Any] = {}
    for name in known:
        raw = data.get(name, getattr(defaults, name))
        for env_key in _ENV_OVERRIDES.get(name, ()):
            env_value = get_env(env_key)
            if env_value:
                raw = env_value
                break
        values[name] = _coerce(name, raw, getattr(defaults, name))

    settings = Settings(**values)
    if settings.user_pool_size < 1:
        raise ValueError("user_pool_size must be at least 1")
    if settings.max_pages < 1:
        raise ValueError("max_pages must be at least 1")
    if not settings.llm_api_key:
        log.warning("No LLM API key configured (set OPENAI_API_KEY); model calls will fail")
    return settings


def ensure_dirs(settings: Settings | None = None) -> None:
    dirs = {DATA_DIR, CONFIG_DIR}
    if settings is not None:
        dirs.add(settings.applications_path.parent)
        dirs.add(settings.users_path.parent)
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)
