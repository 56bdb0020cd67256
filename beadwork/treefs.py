"""File trees that hold an issue repository's content."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


def _norm(path: str) -> str:
    return path.strip("/")


class TreeFS(ABC):
    """A slash-separated tree of files. Directories exist only while they hold files
    (or, on disk, while created explicitly)."""

    @abstractmethod
    def read_file(self, path: str) -> bytes: ...

    @abstractmethod
    def write_file(self, path: str, data: bytes) -> None: ...

    @abstractmethod
    def mkdir_all(self, path: str) -> None: ...

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a file or empty directory; missing paths are ignored."""

    @abstractmethod
    def list_dir(self, path: str) -> list[str]:
        """Return sorted entry names; raise FileNotFoundError if absent."""

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def is_dir(self, path: str) -> bool: ...


class MemoryTree(TreeFS):
    """An in-memory tree where directories are implied by the files below them."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def _children(self, path: str) -> set[str]:
        prefix = f"{path}/" if path else ""
        return {k[len(prefix):].split("/", 1)[0] for k in self._files if k.startswith(prefix)}

    def read_file(self, path: str) -> bytes:
        path = _norm(path)
        try:
            return self._files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write_file(self, path: str, data: bytes) -> None:
        path = _norm(path)
        if self.is_dir(path):
            raise IsADirectoryError(path)
        parts = path.split("/")
        for i in range(1, len(parts)):
            parent = "/".join(parts[:i])
            if parent in self._files:
                raise NotADirectoryError(parent)
        self._files[path] = bytes(data)

    def mkdir_all(self, path: str) -> None:
        path = _norm(path)
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            if "/".join(parts[:i]) in self._files:
                raise NotADirectoryError(path)

    def remove(self, path: str) -> None:
        path = _norm(path)
        if path in self._files:
            del self._files[path]
        elif self.is_dir(path):
            raise OSError(f"directory not empty: {path}")

    def list_dir(self, path: str) -> list[str]:
        path = _norm(path)
        if path in self._files:
            raise NotADirectoryError(path)
        names = self._children(path)
        if not names and path:
            raise FileNotFoundError(path)
        return sorted(names)

    def exists(self, path: str) -> bool:
        path = _norm(path)
        return path in self._files or self.is_dir(path)

    def is_dir(self, path: str) -> bool:
        path = _norm(path)
        if not path:
            return True
        return any(k.startswith(path + "/") for k in self._files)


class DirectoryTree(TreeFS):
    """A tree stored in a directory on disk; emptied directories are pruned."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _full(self, path: str) -> Path:
        path = _norm(path)
        return self.root / path if path else self.root

    def read_file(self, path: str) -> bytes:
        return self._full(path).read_bytes()

    def write_file(self, path: str, data: bytes) -> None:
        full = self._full(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)

    def mkdir_all(self, path: str) -> None:
        self._full(path).mkdir(parents=True, exist_ok=True)

    def remove(self, path: str) -> None:
        full = self._full(path)
        if full.is_dir():
            full.rmdir()
        elif full.exists():
            full.unlink()
        else:
            return
        parent = full.parent
        while parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent

    def list_dir(self, path: str) -> list[str]:
        return sorted(p.name for p in self._full(path).iterdir())

    def exists(self, path: str) -> bool:
        return self._full(path).exists()

    def is_dir(self, path: str) -> bool:
        return self._full(path).is_dir()