"""
Storage interface consumed by the sync pipeline.

Paths are vault-relative strings with forward slashes ("memos/2024/05/a.md"),
the same shape a note-taking host exposes. The pipeline depends only on
these primitives, never on a particular storage engine.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageProtocol(Protocol):
    """
    Minimal file store used by dedup, materialization and digests.

    Implemented by:
    - LocalStorage (a directory on the local filesystem)
    """

    def exists(self, path: str) -> bool: ...

    def list(self, path: str) -> tuple[list[str], list[str]]:
        """Return (files, folders) directly under ``path`` as full storage paths."""
        ...

    def read(self, path: str) -> str: ...

    def read_binary(self, path: str) -> bytes: ...

    def create(self, path: str, content: str) -> None:
        """Create a new text file. Raises FileExistsError if it exists."""
        ...

    def modify(self, path: str, content: str) -> None:
        """Replace the content of an existing text file."""
        ...

    def write_binary(self, path: str, data: bytes) -> None: ...

    def mkdir(self, path: str) -> None: ...


def join(*parts: str) -> str:
    """Join storage path segments with '/'."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


class LocalStorage:
    """
    StorageProtocol over a base directory (the "vault").

    Also supports ``set_mtime``, which the pipeline uses opportunistically.
    """

    def __init__(self, base_path: Path):
        """
        Args:
            base_path: Directory all storage paths are relative to
        """
        self.base_path = Path(base_path)

    def _resolve(self, path: str) -> Path:
        resolved = (self.base_path / path).resolve()
        base = self.base_path.resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return resolved

    def _relative(self, full: Path) -> str:
        return full.relative_to(self.base_path.resolve()).as_posix()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def list(self, path: str) -> tuple[list[str], list[str]]:
        directory = self._resolve(path)
        files: list[str] = []
        folders: list[str] = []
        for entry in sorted(directory.iterdir()):
            if entry.is_symlink():
                continue
            if entry.is_dir():
                folders.append(self._relative(entry))
            elif entry.is_file():
                files.append(self._relative(entry))
        return files, folders

    def read(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def read_binary(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def create(self, path: str, content: str) -> None:
        target = self._resolve(path)
        with open(target, "x", encoding="utf-8") as f:
            f.write(content)

    def modify(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"Cannot modify missing file: {path}")
        target.write_text(content, encoding="utf-8")

    def write_binary(self, path: str, data: bytes) -> None:
        self._resolve(path).write_bytes(data)

    def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def set_mtime(self, path: str, when: datetime) -> None:
        """Set access and modification time of a file."""
        ts = when.timestamp()
        os.utime(self._resolve(path), (ts, ts))
