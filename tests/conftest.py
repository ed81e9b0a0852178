from __future__ import annotations

import io
import os
import tempfile
import zipfile
from pathlib import Path

import pytest

# main.py configures logging and the static client at import time.
_LOG_DIR = tempfile.mkdtemp(prefix="stack-morph-test-logs-")
os.environ["LOG_DIR"] = _LOG_DIR
os.environ["FRONTEND_DIST"] = str(Path(_LOG_DIR) / "no-dist")

from errors import ModelInvocationError  # noqa: E402
from settings import ConversionMode, Settings  # noqa: E402


class FakeModelClient:
    """Stands in for ModelClient; replies with a fixed string or a callable's result."""

    def __init__(self, reply) -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.reply(prompt) if callable(self.reply) else self.reply
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_zip(files: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def make_settings(workspace_root: Path):
    def _make(**overrides) -> Settings:
        values = {
            "api_key": "test-key",
            "mode": ConversionMode.PROJECT,
            "workspace_root": workspace_root,
            "log_dir": Path(_LOG_DIR),
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def model_failure() -> ModelInvocationError:
    return ModelInvocationError("Model request failed: quota exceeded")
