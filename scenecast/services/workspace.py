"""Workspace - ephemeral directory owning every intermediate file of one assembly."""

import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence


class Workspace:
    """Per-request scratch directory, removed on every exit path.

    Use as a context manager. The directory exists only inside the ``with``
    block; teardown first renames it out of the way, so the original path is
    gone at once even if removing the files takes a moment.
    """

    def __init__(self, logger: Any, root: Optional[str] = None, prefix: str = "scene-video-"):
        self.logger = logger
        self.root = root
        self.prefix = prefix
        self._path: Optional[Path] = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace is not open")
        return self._path

    @property
    def is_open(self) -> bool:
        return self._path is not None

    def __enter__(self) -> "Workspace":
        if self.root:
            Path(self.root).mkdir(parents=True, exist_ok=True)
        self._path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
        self.logger.debug(f"Workspace created: {self._path}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def file(self, name: str) -> Path:
        """Absolute path of a file inside the workspace."""
        return self.path / name

    def write_bytes(self, name: str, data: bytes) -> Path:
        path = self.file(name)
        path.write_bytes(data)
        return path

    def write_manifest(self, segment_paths: Sequence[Path], name: str = "list.txt") -> Path:
        """
        Write a concat manifest: one quoted absolute path per line.

        Single quotes inside a path are closed, escaped and reopened.
        """
        lines = []
        for segment_path in segment_paths:
            quoted = str(Path(segment_path).resolve()).replace("\\", "/").replace("'", "'\\''")
            lines.append(f"file '{quoted}'")
        return self.write_text(name, "\n".join(lines) + "\n")

    def write_text(self, name: str, text: str) -> Path:
        path = self.file(name)
        path.write_text(text, encoding="utf-8")
        return path

    def cleanup(self) -> None:
        """Remove the directory and everything in it. Safe to call twice."""
        if self._path is None:
            return
        path, self._path = self._path, None

        if not path.exists():
            return
        doomed = path.with_name(f"{path.name}.{uuid.uuid4().hex[:8]}.trash")
        try:
            os.rename(path, doomed)
        except OSError:
            doomed = path
        shutil.rmtree(doomed, ignore_errors=True)
        if doomed.exists():
            self.logger.error(f"Workspace cleanup incomplete: {doomed}")
        else:
            self.logger.debug(f"Workspace removed: {path}")
