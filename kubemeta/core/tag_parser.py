"""
Tag -> local metadata extraction.

The tag of a container log record encodes pod, namespace and container names
(e.g. `kube.var.log.containers.<pod>_<namespace>_<container>-<id>.log`). A
pattern with named capture groups pulls those out; every participating group
becomes a field of the local record.
"""

from __future__ import annotations

import re
from typing import List, Pattern, Tuple

from kubemeta.core.models import MERGED_FIELDS, NAMESPACE_GROUP, POD_NAME_GROUP, TagMeta
from kubemeta.errors import ParseMismatch

# Onigmo/PCRE named group `(?<name>` (but not lookbehind `(?<=` / `(?<!`).
_ONIG_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")


def compile_tag_pattern(pattern: str) -> Pattern[str]:
    """
    Compile a tag pattern, accepting both `(?P<name>...)` and `(?<name>...)` groups.

    Raises:
        ValueError: invalid regex, or a group name that would collide with a merged field.
    """
    translated = _ONIG_NAMED_GROUP.sub("(?P<", pattern)
    try:
        compiled = re.compile(translated)
    except re.error as e:
        raise ValueError(f"Invalid tag pattern: {e}")

    reserved = sorted(set(compiled.groupindex) & set(MERGED_FIELDS))
    if reserved:
        raise ValueError(f"Tag pattern uses reserved group name(s): {', '.join(reserved)}")
    return compiled


def extract_named_groups(pattern: Pattern[str], tag: str) -> List[Tuple[str, str]]:
    """
    Return `(group_name, value)` pairs for the groups that participated in the match,
    ordered by group number.

    Raises:
        ParseMismatch: the pattern does not match the tag.
    """
    m = pattern.search(tag)
    if m is None:
        raise ParseMismatch(f"Tag does not match pattern: {tag!r}")

    by_number = sorted(pattern.groupindex.items(), key=lambda kv: kv[1])
    pairs: List[Tuple[str, str]] = []
    for name, number in by_number:
        value = m.group(number)
        if value is None:
            continue
        pairs.append((name, value))
    return pairs


class TagParser:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._regex = compile_tag_pattern(pattern)

    def extract(self, tag: str) -> List[Tuple[str, str]]:
        return extract_named_groups(self._regex, tag)

    def parse(self, tag: str) -> TagMeta:
        meta = TagMeta()
        for name, value in self.extract(tag):
            if name == POD_NAME_GROUP and meta.pod_name is None:
                meta.pod_name = value
            elif name == NAMESPACE_GROUP and meta.namespace is None:
                meta.namespace = value
            meta.record[name] = value
        return meta
