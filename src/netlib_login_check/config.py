from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .credentials import parse_credentials
from .models import Credential


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_BASE_URL = "https://www.netlib.re"
DEFAULT_LOGIN_ROUTES = ["#/login", "#/auth", "#login"]


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only config so a `.env` file is enough for scheduled runs.

    YAML remains an optional override (and the only way to set a structured `accounts:` list inline).
    """
    return {
        "site": {
            "base_url": os.getenv("SITE_BASE_URL", DEFAULT_BASE_URL),
            "login_routes": _env_list("SITE_LOGIN_ROUTES", DEFAULT_LOGIN_ROUTES),
            "home_ready_policy": os.getenv("HOME_READY_POLICY", "fallback"),
            "banner_max_top_px": _env_int("BANNER_MAX_TOP_PX", 450),
        },
        "timing": {
            "poll_window_ms": _env_int("POLL_WINDOW_MS", 40_000),
            "settle_ms": _env_int("SETTLE_MS", 1_500),
            "inter_attempt_delay_ms": _env_int("INTER_ATTEMPT_DELAY_MS", 3_000),
        },
        "browser": {
            "headless": _env_bool("HEADLESS", default=True),
        },
        "artifacts": {
            "dir": os.getenv("ARTIFACTS_DIR", "data/artifacts"),
            "capture": os.getenv("ARTIFACTS_CAPTURE", "failures"),
        },
        "notify": {
            "telegram_bot_token": os.getenv("TG_BOT_TOKEN", ""),
            "telegram_chat_id": os.getenv("TG_CHAT_ID", ""),
            "webhook_url": os.getenv("NOTIFY_WEBHOOK_URL", ""),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/login_check.log"),
        },
        "accounts": os.getenv("ACCOUNTS", ""),
    }


class SiteConfig(BaseModel):
    """
    The target SPA.

    `banner_max_top_px` and `home_ready_policy` are layout-dependent heuristics; tune them per deployment
    instead of editing code.
    """

    base_url: str = DEFAULT_BASE_URL
    login_routes: list[str] = Field(default_factory=lambda: list(DEFAULT_LOGIN_ROUTES))
    home_ready_policy: Literal["required", "fallback"] = "fallback"
    banner_max_top_px: int = Field(default=450, ge=0)

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, v: str) -> str:
        base_url = (v or "").strip().rstrip("/")
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"site.base_url must be a full URL like {DEFAULT_BASE_URL!r}")
        return base_url

    @field_validator("login_routes")
    @classmethod
    def _routes_are_fragments(cls, v: list[str]) -> list[str]:
        routes = [r.strip() for r in v if r and r.strip()]
        for r in routes:
            # Path routes 404 on the origin server; only client-side routes are allowed here.
            if not r.startswith("#"):
                raise ValueError(f"site.login_routes entries must be fragment routes starting with '#' (got {r!r})")
        if not routes:
            raise ValueError("site.login_routes must contain at least one fragment route")
        return routes


class TimingConfig(BaseModel):
    navigation_timeout_ms: int = Field(default=30_000, gt=0)
    ready_timeout_ms: int = Field(default=30_000, ge=0)
    disconnect_poll_interval_ms: int = Field(default=400, gt=0)
    poll_window_ms: int = Field(default=40_000, gt=0)
    settle_ms: int = Field(default=1_500, ge=0)
    sample_interval_ms: int = Field(default=500, gt=0)
    submit_timeout_ms: int = Field(default=10_000, gt=0)
    route_step_timeout_ms: int = Field(default=8_000, ge=0)
    channel_timeout_ms: int = Field(default=2_000, gt=0)
    inter_attempt_delay_ms: int = Field(default=3_000, ge=0)


class BrowserConfig(BaseModel):
    headless: bool = True
    slow_mo_ms: int = Field(default=0, ge=0)
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=900, gt=0)
    launch_args: list[str] = Field(default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"])


class ArtifactsConfig(BaseModel):
    dir: str = "data/artifacts"
    capture: Literal["never", "failures", "always"] = "failures"


class NotifyConfig(BaseModel):
    telegram_bot_token: str = Field(default="", repr=False)
    telegram_chat_id: str = ""
    webhook_url: str = Field(default="", repr=False)
    # Telegram rejects messages above 4096 characters.
    max_chars: int = Field(default=4096, gt=64)
    timeout_seconds: float = Field(default=15.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/login_check.log"


class AppConfig(BaseModel):
    site: SiteConfig = SiteConfig()
    timing: TimingConfig = TimingConfig()
    browser: BrowserConfig = BrowserConfig()
    artifacts: ArtifactsConfig = ArtifactsConfig()
    notify: NotifyConfig = NotifyConfig()
    logging: LoggingConfig = LoggingConfig()
    accounts: list[Credential] = Field(default_factory=list, repr=False)

    @model_validator(mode="before")
    @classmethod
    def _normalize_accounts(cls, data: object) -> object:
        # Accept either shape (structured list or delimited text); downstream only sees Credentials.
        if not isinstance(data, dict) or "accounts" not in data:
            return data
        raw = data.get("accounts")
        if isinstance(raw, (list, tuple)) and all(isinstance(c, Credential) for c in raw):
            return data
        data = dict(data)
        data["accounts"] = parse_credentials(raw)
        return data


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    defaults = _default_config_from_env()
    env_accounts = defaults.pop("accounts")
    merged = _deep_merge(defaults, raw)

    # Accounts are replaced wholesale (never merged); YAML wins over env when it provides any.
    yaml_accounts = merged.get("accounts") if isinstance(merged, dict) else None
    merged["accounts"] = yaml_accounts if yaml_accounts else env_accounts

    return AppConfig.model_validate(merged)
