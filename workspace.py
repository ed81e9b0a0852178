import logging
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("StackMorph.workspace")


class WorkspaceRoot:
    """Shared parent directory for per-request scratch workspaces."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def ensure(self) -> Path:
        if not self.path.exists():
            logger.info(f"Creating temporary directory at {self.path}")
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def allocate(self) -> Path:
        self.ensure()
        # mkdtemp guarantees a fresh directory even for same-millisecond arrivals.
        workspace = tempfile.mkdtemp(prefix=f"request-{int(time.time() * 1000)}-", dir=self.path)
        logger.debug(f"Created request workspace: {workspace}")
        return Path(workspace)


@contextmanager
def scratch_workspace(root: WorkspaceRoot) -> Iterator[Path]:
    workspace = root.allocate()
    try:
        yield workspace
    finally:
        if workspace.exists():
            try:
                shutil.rmtree(workspace)
                logger.info(f"Cleaned up temporary directory: {workspace}")
            except OSError as e:
                logger.error(f"Failed to clean up temporary directory {workspace}: {e}")
