"""Content digests used for whole-file drift detection."""

from __future__ import annotations

import base64
import hashlib
import hmac
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

_CHUNK_SIZE = 8192


class HashAlgorithm(str, Enum):
    SHA256 = "sha256"
    SHA512 = "sha512"
    SHA3_256 = "sha3_256"

    @classmethod
    def parse(cls, value: str | HashAlgorithm) -> HashAlgorithm:
        if isinstance(value, cls):
            return value
        raw = str(value).strip().lower().replace("-", "_")
        try:
            return cls(raw)
        except ValueError as exc:
            raise ValueError(f"unsupported hash algorithm `{value}`: expected one of {[a.value for a in cls]}") from exc


def _digest(algorithm: str | HashAlgorithm) -> "hashlib._Hash":
    return hashlib.new(HashAlgorithm.parse(algorithm).value)


def file_hash(path: Path, algorithm: str | HashAlgorithm = HashAlgorithm.SHA256) -> str:
    digest = _digest(algorithm)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def file_hashes(path: Path, *algorithms: str | HashAlgorithm) -> dict[HashAlgorithm, str]:
    """Digest a file once per algorithm in a single read."""
    digests = {HashAlgorithm.parse(alg): _digest(alg) for alg in algorithms}
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            for digest in digests.values():
                digest.update(chunk)
    return {alg: digest.hexdigest() for alg, digest in digests.items()}


def file_hash_base64(path: Path, algorithm: str | HashAlgorithm = HashAlgorithm.SHA256) -> str:
    digest = _digest(algorithm)
    digest.update(path.read_bytes())
    return base64.b64encode(digest.digest()).decode("ascii")


def verify_file_hash(path: Path, expected: str, algorithm: str | HashAlgorithm = HashAlgorithm.SHA256) -> bool:
    return hmac.compare_digest(file_hash(path, algorithm), expected.strip().lower())


@dataclass(frozen=True)
class _CacheKey:
    path: Path
    size: int
    mtime_ns: int
    algorithm: HashAlgorithm


class FileHashCache:
    """Path to digest cache invalidated by file size and modification time.

    Safe to share between threads.
    """

    def __init__(self, algorithm: str | HashAlgorithm = HashAlgorithm.SHA256) -> None:
        self.algorithm = HashAlgorithm.parse(algorithm)
        self._entries: dict[_CacheKey, str] = {}
        self._lock = threading.Lock()

    def _key(self, path: Path) -> _CacheKey:
        resolved = path.resolve()
        stat = resolved.stat()
        return _CacheKey(resolved, stat.st_size, stat.st_mtime_ns, self.algorithm)

    def get(self, path: Path) -> str:
        key = self._key(path)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            return cached
        value = file_hash(key.path, self.algorithm)
        with self._lock:
            stale = [k for k in self._entries if k.path == key.path and k != key]
            for k in stale:
                del self._entries[k]
            self._entries[key] = value
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
