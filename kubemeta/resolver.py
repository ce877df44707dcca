"""
Tag -> enriched metadata resolution.

    tag -> TagParser -> (local record, cache key)
        -> cache hit:  stored bytes
        -> cache miss: fetch pod -> merge -> cache put -> stored bytes

A miss costs exactly one API server request and one cache insert. Nothing is
cached when any step fails, so the next resolution for that pod tries again.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from kubemeta.config import KubeMetaConfig
from kubemeta.core.codec import pack_record, unpack_record
from kubemeta.core.merge import merge_meta_packed
from kubemeta.core.tag_parser import TagParser
from kubemeta.errors import KubeMetaError, TransportFailure
from kubemeta.providers.k8s_provider import K8sProvider, get_k8s_provider
from kubemeta.providers.local_identity import LocalPodInfo, get_local_pod_info
from kubemeta.storage.meta_cache import MetadataCache

logger = logging.getLogger(__name__)


class KubeMetaResolver:
    def __init__(self, parser: TagParser, cache: MetadataCache, client: K8sProvider) -> None:
        self.parser = parser
        self.cache = cache
        self.client = client

    def resolve(self, tag: str) -> bytes:
        """
        Return the packed metadata record for `tag`.

        On a cache hit (or after populating the cache) the returned bytes are the
        cache's own copy. Tags without namespace/pod yield the local record only.

        Raises:
            KubeMetaError: parse, transport, response or cache failure.
        """
        meta = self.parser.parse(tag)
        key = meta.cache_key
        if key is None:
            # Without namespace and pod there is nothing to ask the API server.
            logger.debug("No cache key for tag %r; returning local metadata only", tag)
            return pack_record(meta.record)

        cached, found = self.cache.get(key)
        if found and cached is not None:
            return cached

        # mypy: cache_key guarantees both are set
        assert meta.namespace is not None and meta.pod_name is not None
        api = self.client.fetch(meta.namespace, meta.pod_name)
        merged = merge_meta_packed(meta.record, api)

        entry_id = self.cache.put(key, merged)
        logger.debug("Resolved metadata for %s", key)
        return self.cache.get_by_id(entry_id)

    def resolve_record(self, tag: str) -> Dict[str, Any]:
        return unpack_record(self.resolve(tag))

    def warmup(self, identity: Optional[LocalPodInfo]) -> None:
        """Verify API server connectivity by fetching our own pod."""
        if identity is None:
            raise TransportFailure("Cannot test API server connectivity: local POD identity unknown")
        logger.info("Testing connectivity with API server...")
        try:
            self.client.fetch(identity.namespace, identity.pod_name)
        except KubeMetaError as e:
            logger.error("Could not get meta for POD %s: %s", identity.pod_name, e)
            raise
        logger.info("API server connectivity OK")

    def close(self) -> None:
        self.client.close()
        self.cache.close()


def build_resolver(
    config: KubeMetaConfig,
    *,
    cache: Optional[MetadataCache] = None,
    client: Optional[K8sProvider] = None,
) -> KubeMetaResolver:
    """
    Wire a resolver from config: local identity, tag parser, cache and API client.

    Runs the connectivity check when `config.warmup` is set.
    """
    identity = get_local_pod_info(config.namespace_file, config.token_file)
    parser = TagParser(config.tag_regex)
    resolver = KubeMetaResolver(
        parser=parser,
        cache=cache if cache is not None else MetadataCache(),
        client=client if client is not None else get_k8s_provider(config, identity),
    )
    if config.warmup:
        resolver.warmup(identity)
    return resolver
