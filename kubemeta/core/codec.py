"""MessagePack serialization of metadata records (the form the cache stores)."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

import msgpack

from kubemeta.errors import CacheUnavailable


def pack_record(record: Mapping[str, Any]) -> bytes:
    # msgpack keeps mapping insertion order, so field order survives the round trip.
    return msgpack.packb(dict(record), use_bin_type=True)  # type: ignore[no-any-return]


def unpack_record(raw: Union[bytes, bytearray, memoryview]) -> Dict[str, Any]:
    """
    Decode a packed record.

    Raises:
        CacheUnavailable: the bytes are not a packed map (corrupt stored entry).
    """
    try:
        record = msgpack.unpackb(raw, raw=False)
    except Exception as e:
        raise CacheUnavailable(f"Failed to decode record: {e}") from e
    if not isinstance(record, dict):
        raise CacheUnavailable(f"Decoded record is not a map: {type(record).__name__}")
    return record
