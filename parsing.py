"""Parsers for the model's replies.

Whole-project replies are a series of delimited blocks::

    // START_FILE: src/App.vue
    ...content...
    // END_FILE: src/App.vue

Per-file replies are expected to be bare code, optionally wrapped in a single
markdown fence.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from archive import ConvertedFile

logger = logging.getLogger("StackMorph.parsing")

FILE_START_MARKER = "// START_FILE:"
FILE_END_MARKER = "// END_FILE:"

_START_RE = re.compile(r"^// START_FILE: (\S+)$")
_END_RE = re.compile(r"^// END_FILE: (\S+)$")
_WHOLE_FENCE_RE = re.compile(r"^\s*```[\w+.-]*\n(.*?)\n```\s*$", re.DOTALL)
_FIRST_FENCE_RE = re.compile(r"```[\w+.-]*[ \t]*\n(.*?)\n?```", re.DOTALL)

_PROSE_OPENERS = (
    "here is", "here's", "sure", "certainly", "of course", "below is",
    "i have", "i've", "this is", "the following", "as an ai",
)


@dataclass(frozen=True)
class Fenced:
    content: str


@dataclass(frozen=True)
class Raw:
    content: str

    def looks_like_prose(self) -> bool:
        first_line = self.content.lstrip().split("\n", 1)[0].strip().lower()
        if not first_line:
            return False
        return first_line.startswith(_PROSE_OPENERS)


FenceResult = Union[Fenced, Raw]


def start_marker(path: str) -> str:
    return f"{FILE_START_MARKER} {path}"


def end_marker(path: str) -> str:
    return f"{FILE_END_MARKER} {path}"


def strip_fence(content: str) -> str:
    """Drop a markdown fence wrapping the whole of ``content``, then trim."""
    match = _WHOLE_FENCE_RE.match(content)
    if match:
        content = match.group(1)
    return content.strip()


def sanitize_output_path(path: str) -> Optional[str]:
    """Normalise a model-supplied path, or return None if it is unsafe.

    Absolute paths, drive-qualified paths and paths with ``..`` segments
    could escape the output root and are rejected.
    """
    normalized = path.replace("\\", "/")
    if normalized.startswith("/") or re.match(r"^[A-Za-z]:", normalized):
        return None
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if not parts or ".." in parts:
        return None
    return "/".join(parts)


def parse_project_response(response_text: str) -> List[ConvertedFile]:
    files = {}
    current_path = None
    current_lines: List[str] = []

    for raw_line in response_text.splitlines():
        line = raw_line.rstrip()
        start = _START_RE.match(line)
        end = _END_RE.match(line)

        if current_path is None:
            if start:
                current_path = start.group(1)
                current_lines = []
            continue

        if end and end.group(1) == current_path:
            _collect(files, current_path, "\n".join(current_lines))
            current_path = None
        elif end:
            logger.warning(
                f"Discarding block for {current_path}: closed by END_FILE for {end.group(1)}"
            )
            current_path = None
        elif start:
            logger.warning(
                f"Discarding block for {current_path}: START_FILE for {start.group(1)} before its END_FILE"
            )
            current_path = start.group(1)
            current_lines = []
        else:
            current_lines.append(raw_line)

    if current_path is not None:
        logger.warning(f"Discarding unterminated block for {current_path}")

    return [ConvertedFile(path=path, content=content) for path, content in files.items()]


def _collect(files: dict, path: str, content: str) -> None:
    safe_path = sanitize_output_path(path)
    if safe_path is None:
        logger.warning(f"Rejecting unsafe output path from model: {path}")
        return
    if safe_path in files:
        logger.warning(f"Duplicate block for {safe_path}; keeping the last one")
    files[safe_path] = strip_fence(content)


def parse_file_response(response_text: str) -> FenceResult:
    match = _FIRST_FENCE_RE.search(response_text)
    if match:
        return Fenced(match.group(1).strip())
    return Raw(response_text.strip())
