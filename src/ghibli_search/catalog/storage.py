"""Key/value object storage for stills and thumbnails backed by a local directory."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from ghibli_search.errors import StorageUnavailableError


@dataclass(frozen=True)
class StoredObject:
    """A stored object's body and declared content type."""

    key: str
    body: bytes = field(repr=False)
    content_type: str | None


class LocalObjectStore:
    """Object store rooted at a directory; keys are POSIX paths relative to the root."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @property
    def available(self) -> bool:
        return self.root.is_dir()

    def _resolve(self, key: str) -> Path | None:
        """Map a key to a file path, or None if it escapes the root."""
        root = self.root.resolve()
        path = (root / key).resolve()
        if not path.is_relative_to(root) or path == root:
            return None
        return path

    def get(self, key: str) -> StoredObject | None:
        """Fetch an object by key. Returns None if absent."""
        if not key or not self.available:
            return None
        path = self._resolve(key)
        if path is None or not path.is_file():
            return None
        content_type, _ = mimetypes.guess_type(path.name)
        return StoredObject(key=key, body=path.read_bytes(), content_type=content_type)

    def put(self, key: str, body: bytes) -> None:
        """Write an object, creating intermediate directories."""
        path = self._resolve(key)
        if path is None:
            raise ValueError(f"Invalid storage key: {key!r}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)

    def exists(self, key: str) -> bool:
        path = self._resolve(key)
        return path is not None and path.is_file()

    def list(self, limit: int = 1000) -> list[str]:
        """List up to ``limit`` keys in sorted order."""
        if not self.available:
            raise StorageUnavailableError(f"Object storage root not found: {self.root}")
        keys: list[str] = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            keys.append(path.relative_to(self.root).as_posix())
            if len(keys) >= limit:
                break
        return keys
