"""Domain models shared by the tag parser, merger and resolver."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Tag pattern groups that identify the pod (and therefore the cache key).
POD_NAME_GROUP = "pod_name"
NAMESPACE_GROUP = "namespace_name"

# Keys the merge step appends after the local fields.
POD_ID_FIELD = "pod_id"
LABELS_FIELD = "labels"
ANNOTATIONS_FIELD = "annotations"
MERGED_FIELDS = (POD_ID_FIELD, LABELS_FIELD, ANNOTATIONS_FIELD)


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TagMeta(BaseModelStrict):
    """Metadata recovered from a tag alone, before any API server lookup."""

    # Named groups in match order; dict insertion order is the serialization order.
    record: Dict[str, str] = Field(default_factory=dict)
    namespace: Optional[str] = None
    pod_name: Optional[str] = None

    @property
    def cache_key(self) -> Optional[str]:
        # An empty capture cannot address a pod, so it yields no key either.
        if not self.namespace or not self.pod_name:
            return None
        return f"{self.namespace}:{self.pod_name}"
