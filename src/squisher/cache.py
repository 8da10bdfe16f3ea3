"""
Content-addressed cache of encoder output.

Keys are SHA-256 fingerprints of (encode options, raw source bytes), so the
cache knows nothing about which texture or material produced an image: equal
bytes with equal options share one entry, any option change yields a new key.
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from .roles import EncodeOptions

logger = logging.getLogger(__name__)


def fingerprint(options: EncodeOptions, data: bytes) -> str:
    """Hex cache key for encoding `data` with `options`."""
    hasher = hashlib.sha256()
    hasher.update(options.cache_token())
    hasher.update(b"\0")
    hasher.update(data)
    return hasher.hexdigest()


def default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / "squisher"


class ByteStore:
    """Minimal key -> bytes store the cache is built on."""

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def put(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def discard(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(ByteStore):
    def __init__(self):
        self.entries: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self.entries.get(key)

    def put(self, key: str, data: bytes) -> None:
        self.entries[key] = bytes(data)

    def discard(self, key: str) -> None:
        self.entries.pop(key, None)


class DirectoryStore(ByteStore):
    """One file per key, named <key>.ktx2, in a directory shared across runs."""

    suffix = ".ktx2"

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}{self.suffix}"

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        logger.debug("Cache file is at %s", path)
        return data

    def put(self, key: str, data: bytes) -> None:
        # write-then-rename so concurrent runs never observe a partial entry
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Stored cache entry %s", self.path_for(key))

    def discard(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass


class EncodeCache:
    """
    Lookup/store front for a ByteStore.

    With `enabled=False` lookups always miss, but fresh results are still
    stored so a later cached run can reuse them.
    """

    def __init__(self, store: ByteStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    def lookup(self, key: str) -> Optional[bytes]:
        if not self.enabled:
            return None
        return self.store.get(key)

    def save(self, key: str, data: bytes) -> None:
        self.store.put(key, data)

    def invalidate(self, key: str) -> None:
        self.store.discard(key)
