import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigurationError

DEFAULT_MODEL = "gpt-4o"
DEFAULT_WORKSPACE_ROOT = Path(tempfile.gettempdir()) / "stack-morph-uploads"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConversionMode(str, Enum):
    PROJECT = "project"
    FILE = "file"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    azure_endpoint: Optional[str] = None
    azure_api_version: Optional[str] = None
    mode: ConversionMode = ConversionMode.PROJECT
    workspace_root: Path = DEFAULT_WORKSPACE_ROOT
    max_retries: int = 2
    temperature: float = 0.1
    max_tokens: int = 16000
    save_raw_responses: bool = False
    strict_raw_output: bool = False
    log_dir: Path = Path("logs")
    frontend_dist: Path = Path("dist")
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_endpoint and self.azure_api_version)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        raw_mode = os.getenv("CONVERSION_MODE", ConversionMode.PROJECT.value).strip().lower()
        try:
            mode = ConversionMode(raw_mode)
        except ValueError:
            raise ConfigurationError(
                f"CONVERSION_MODE must be 'project' or 'file', got {raw_mode!r}"
            )

        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT") or None
        api_key = os.getenv("OPENAI_API_KEY") or os.getenv("AZURE_OPENAI_API_KEY") or None
        model = (
            os.getenv("AZURE_OPENAI_DEPLOYMENT_NAME") if azure_endpoint else None
        ) or os.getenv("OPENAI_MODEL") or DEFAULT_MODEL

        max_retries = _get_int("MODEL_MAX_RETRIES", 2)
        if max_retries < 0:
            raise ConfigurationError("MODEL_MAX_RETRIES must not be negative")

        return cls(
            api_key=api_key,
            model=model,
            azure_endpoint=azure_endpoint,
            azure_api_version=os.getenv("AZURE_OPENAI_API_VERSION") or None,
            mode=mode,
            workspace_root=Path(os.getenv("WORKSPACE_ROOT") or DEFAULT_WORKSPACE_ROOT),
            max_retries=max_retries,
            temperature=_get_float("MODEL_TEMPERATURE", 0.1),
            max_tokens=_get_int("MODEL_MAX_TOKENS", 16000),
            save_raw_responses=_get_bool("SAVE_RAW_RESPONSES"),
            strict_raw_output=_get_bool("STRICT_RAW_OUTPUT"),
            log_dir=Path(os.getenv("LOG_DIR") or "logs"),
            frontend_dist=Path(os.getenv("FRONTEND_DIST") or "dist"),
            host=os.getenv("HOST") or "0.0.0.0",
            port=_get_int("PORT", 8080),
        )

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError()
        return self.api_key
