import io
import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List

from errors import ArchiveCorruptError

logger = logging.getLogger("StackMorph.archive")

# Single source of truth for "is this a code file".
CODE_EXTENSIONS = frozenset({
    ".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte", ".html", ".css", ".scss", ".json", ".md"
})

EXCLUDED_DIRS = frozenset({"node_modules", "bower_components", ".git", ".hg", ".svn"})


@dataclass(frozen=True)
class DiscoveredFile:
    absolute_path: Path
    relative_path: str
    extension: str


@dataclass(frozen=True)
class ConvertedFile:
    path: str
    content: str


def extract_archive(data: bytes, destination: Path) -> None:
    """Extract every entry of a zip byte stream into ``destination``.

    Existing files at the same relative path are overwritten. ``zipfile``
    strips absolute prefixes and ``..`` components from member names, so
    nothing lands outside ``destination``.
    """
    destination.mkdir(parents=True, exist_ok=True)
    # Unsupported compression methods raise NotImplementedError, encrypted members RuntimeError.
    try:
        with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
            zf.extractall(destination)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, NotImplementedError, RuntimeError) as e:
        logger.error(f"Uploaded archive is not a valid zip: {e}")
        raise ArchiveCorruptError()
    logger.debug(f"Extracted archive contents to {destination}")


def walk_files(root: Path) -> Iterator[Path]:
    """Yield regular files under ``root`` depth-first, in sorted name order.

    Dependency caches and version-control directories are skipped at any
    depth. Symlinks and special files are not yielded or followed.
    """
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            if entry.name in EXCLUDED_DIRS:
                continue
            yield from walk_files(Path(entry.path))
        elif entry.is_file(follow_symlinks=False):
            yield Path(entry.path)


def filter_code_files(paths: Iterable[Path], root: Path) -> Iterator[DiscoveredFile]:
    for path in paths:
        ext = os.path.splitext(path.name)[1]
        if ext not in CODE_EXTENSIONS:
            continue
        yield DiscoveredFile(
            absolute_path=path,
            relative_path=path.relative_to(root).as_posix(),
            extension=ext,
        )


def discover_code_files(root: Path) -> List[DiscoveredFile]:
    return list(filter_code_files(walk_files(root), root))


def _new_zip_buffer():
    buffer = io.BytesIO()
    return buffer, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED)


def pack_files(files: Iterable[ConvertedFile]) -> bytes:
    buffer, zf = _new_zip_buffer()
    with zf:
        for file in files:
            arc_name = file.path.replace("\\", "/")
            zf.writestr(arc_name, file.content.encode("utf-8"))
            logger.debug(f"Added {arc_name} to output ZIP")
    return buffer.getvalue()


def pack_directory(root: Path) -> bytes:
    buffer, zf = _new_zip_buffer()
    # The whole tree goes back out, excluded directories included.
    with zf:
        for dir_path, dir_names, file_names in os.walk(root):
            dir_names.sort()
            for file_name in sorted(file_names):
                file_path = Path(dir_path) / file_name
                arc_name = file_path.relative_to(root).as_posix()
                zf.write(file_path, arcname=arc_name)
                logger.debug(f"Added {arc_name} to output ZIP")
    return buffer.getvalue()
