"""
Merge local tag metadata with the API server's Pod document.

The API server returns the full Pod resource:

    {
      "kind": "Pod",
      "apiVersion": "v1",
      "metadata": {
        "name": "fluent-bit-rz47v",
        "namespace": "kube-system",
        "uid": "...",
        "labels": {...},
        "annotations": {...},
        ...
      },
      "spec": {...},
      "status": {...}
    }

Only three things are taken from `metadata`:

- `uid`          -> emitted as `pod_id`
- `labels`       -> emitted verbatim
- `annotations`  -> emitted verbatim

The merge is all-or-nothing: without a `metadata` object nothing is produced.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

from kubemeta.core.codec import pack_record
from kubemeta.core.models import ANNOTATIONS_FIELD, LABELS_FIELD, POD_ID_FIELD
from kubemeta.errors import MalformedResponse

_UID_KEY = "uid"


def _find_metadata(api: Any) -> Mapping[str, Any]:
    if not isinstance(api, Mapping):
        raise MalformedResponse(f"API response is not an object: {type(api).__name__}")
    if "metadata" not in api:
        raise MalformedResponse("API response has no 'metadata' key")
    meta = api["metadata"]
    if not isinstance(meta, Mapping):
        raise MalformedResponse(f"API response 'metadata' is not an object: {type(meta).__name__}")
    return meta


def _scan_metadata(meta: Mapping[str, Any]) -> Dict[str, Any]:
    """Single pass over `metadata`, keeping the first hit for each field of interest."""
    wanted = (_UID_KEY, LABELS_FIELD, ANNOTATIONS_FIELD)
    found: Dict[str, Any] = {}
    for k, v in meta.items():
        if k in wanted and k not in found:
            found[k] = v
        if len(found) == len(wanted):
            break
    return found


def merge_meta(local: Mapping[str, Any], api: Any) -> Dict[str, Any]:
    """
    Build the merged record: local fields (in order), then pod_id, labels, annotations.

    Raises:
        MalformedResponse: `api` has no `metadata` object.
    """
    found = _scan_metadata(_find_metadata(api))

    merged: Dict[str, Any] = dict(local)
    # Presence, not truthiness: a null `uid`/`labels` still counts as found.
    if _UID_KEY in found:
        merged[POD_ID_FIELD] = found[_UID_KEY]
    for field in (LABELS_FIELD, ANNOTATIONS_FIELD):
        if field in found:
            merged[field] = found[field]
    return merged


def merge_meta_packed(local: Mapping[str, Any], api: Any) -> bytes:
    return pack_record(merge_meta(local, api))
