import json
import os
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kodo.logging import get_logger
from kodo.tools.core.enums import ApprovalMode

_logger = get_logger(__name__)

SETTINGS_DIRNAME = ".kodo"
SETTINGS_FILENAME = "settings.json"


def kodo_home() -> Path:
    return Path(os.environ.get("KODO_HOME") or Path.home() / SETTINGS_DIRNAME)


def global_settings_path() -> Path:
    return kodo_home() / SETTINGS_FILENAME


def project_settings_path(cwd: str | Path) -> Path:
    return Path(cwd) / SETTINGS_DIRNAME / SETTINGS_FILENAME


def load_settings_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        _logger.warning("Failed to load settings from %s", path, exc_info=True)
        return {}
    if not isinstance(raw, dict):
        _logger.warning("%s: expected a JSON object, got %s", path, type(raw).__name__)
        return {}
    return raw


def save_user_settings(settings: dict) -> None:
    path = global_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    current = load_settings_file(path)
    current.update({k: v for k, v in settings.items() if k in PERSIST_KEYS})
    path.write_text(json.dumps(current, indent=2))


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="KODO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        populate_by_name=True,
    )

    # Provider credentials, read from the standard env vars via aliases
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(default=None, alias="OPENAI_BASE_URL")

    model: str | None = None
    plan_model: str | None = None

    approval_mode: ApprovalMode = ApprovalMode.DEFAULT
    # Tool calls naming a tool outside the resolved set skip confirmation
    approve_unknown_tools: bool = True

    language: str = "English"
    todo: bool = True
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _default_plan_model(self) -> "Config":
        if not self.plan_model and self.model:
            self.plan_model = self.model
        return self

    @field_validator("approval_mode", mode="before")
    @classmethod
    def _normalize_approval_mode(cls, v: Any) -> Any:
        if v in (None, ""):
            return ApprovalMode.DEFAULT
        if isinstance(v, str):
            for mode in ApprovalMode:
                if v.lower() == mode.value.lower():
                    return mode
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level


PERSIST_KEYS = frozenset(
    {
        "model",
        "plan_model",
        "approval_mode",
        "approve_unknown_tools",
        "language",
        "todo",
        "log_level",
    }
)


def get_config(cwd: str | Path | None = None, overrides: dict | None = None) -> Config:
    # Build config: overrides > project settings > global settings > env vars > defaults
    layered: dict = {}
    layered.update(load_settings_file(global_settings_path()))
    if cwd is not None:
        layered.update(load_settings_file(project_settings_path(cwd)))
    layered = {k: v for k, v in layered.items() if k in PERSIST_KEYS}
    layered.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return Config(**layered)  # type: ignore - pydantic handles validation
