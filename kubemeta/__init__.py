"""
Kubernetes metadata enrichment for log records.

Typical use:

    from kubemeta import build_resolver, load_kube_meta_config

    resolver = build_resolver(load_kube_meta_config())
    packed = resolver.resolve(tag)
"""

from kubemeta.config import KubeMetaConfig, load_kube_meta_config
from kubemeta.errors import CacheUnavailable, KubeMetaError, MalformedResponse, ParseMismatch, TransportFailure
from kubemeta.resolver import KubeMetaResolver, build_resolver

__all__ = [
    "KubeMetaConfig",
    "load_kube_meta_config",
    "KubeMetaResolver",
    "build_resolver",
    "KubeMetaError",
    "ParseMismatch",
    "TransportFailure",
    "MalformedResponse",
    "CacheUnavailable",
]
