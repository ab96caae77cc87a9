"""
KV interface & ledger key prefixes
==================================

Backend-agnostic key-value surface the ledger tables are persisted through,
plus the canonical namespaces:

- TOKENS   (b"t:") : token id → CBOR metadata record
- PROJECTS (b"p:") : project id → be_u64(token id)
- OWNERS   (b"o:") : owner → CBOR list of token ids (mint order)
- COUNTERS (b"c:") : counter name → be_u64(value)
- META     (b"m:") : store metadata (schema version, nominal owner)

Keys are built with `Prefix.key(*parts)`, which length-prefixes every part so
no delimiter escaping is needed and ordering stays lexicographic:

>>> TOKENS.key(be_u64(7)).startswith(TOKENS.raw)
True

Backends (`MemoryKV`, `SQLiteKV`) implement `KV`; `KV.batch()` returns a
context manager that applies all writes atomically or none of them.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

NS_SEP = b":"

KeyPart = Union[bytes, bytearray, memoryview, str, int]


class Prefix:
    """
    A logical namespace prefix.

    .raw gives the raw bytes prefix.
    .key(*parts) builds prefix + concat(uvarint(len) | part_bytes).
    """

    __slots__ = ("_raw",)

    def __init__(self, ns: Union[bytes, str]) -> None:
        ns_b = ns.encode("ascii") if isinstance(ns, str) else bytes(ns)
        if not ns_b:
            raise ValueError("namespace must be non-empty")
        self._raw = ns_b.rstrip(NS_SEP) + NS_SEP

    @property
    def raw(self) -> bytes:
        return self._raw

    def key(self, *parts: KeyPart) -> bytes:
        out = bytearray(self._raw)
        for p in parts:
            pb = _part_to_bytes(p)
            out.extend(_uvarint(len(pb)))
            out.extend(pb)
        return bytes(out)

    def parts(self, key: bytes) -> List[bytes]:
        """Inverse of `key`: split a composite key back into its raw parts."""
        if not key.startswith(self._raw):
            raise ValueError("key is not under this prefix")
        out: List[bytes] = []
        i = len(self._raw)
        while i < len(key):
            n, shift = 0, 0
            while True:
                b = key[i]
                i += 1
                n |= (b & 0x7F) << shift
                shift += 7
                if not b & 0x80:
                    break
            if i + n > len(key):
                raise ValueError("truncated key part")
            out.append(key[i : i + n])
            i += n
        return out

    def __repr__(self) -> str:
        return f"Prefix({self._raw!r})"


def _part_to_bytes(p: KeyPart) -> bytes:
    if isinstance(p, (bytes, bytearray, memoryview)):
        return bytes(p)
    if isinstance(p, str):
        return p.encode("utf-8")
    if isinstance(p, int):
        if p < 0:
            raise ValueError("negative ints not supported in key parts")
        return p.to_bytes(max(1, (p.bit_length() + 7) // 8), "big")
    raise TypeError(f"unsupported key part type: {type(p)!r}")


def _uvarint(n: int) -> bytes:
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(0x80 | b)
        else:
            out.append(b)
            return bytes(out)


U64_MAX = (1 << 64) - 1


def be_u64(n: int) -> bytes:
    if not (0 <= n <= U64_MAX):
        raise ValueError("be_u64 out of range")
    return n.to_bytes(8, "big")


def from_be_u64(b: bytes) -> int:
    if len(b) != 8:
        raise ValueError(f"expected 8 bytes, got {len(b)}")
    return int.from_bytes(b, "big")


TOKENS = Prefix(b"t")
PROJECTS = Prefix(b"p")
OWNERS = Prefix(b"o")
COUNTERS = Prefix(b"c")
META = Prefix(b"m")


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ReadOnlyKV(Protocol):
    def get(self, key: bytes) -> Optional[bytes]:
        """Fetch value or None if missing."""
        ...

    def has(self, key: bytes) -> bool: ...

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs under `prefix` in lexicographic key order."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class Batch(Protocol):
    """
    Write batch. Leaving the context without an exception commits; an escaping
    exception rolls everything back.
    """

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    def put(self, key: bytes, value: bytes) -> None: ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (idempotent)."""
        ...

    def batch(self) -> Batch: ...


__all__ = [
    "ReadOnlyKV",
    "KV",
    "Batch",
    "Prefix",
    "TOKENS",
    "PROJECTS",
    "OWNERS",
    "COUNTERS",
    "META",
    "U64_MAX",
    "be_u64",
    "from_be_u64",
]
