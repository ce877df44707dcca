from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import pytest

from kubemeta.config import load_kube_meta_config
from kubemeta.core.codec import unpack_record
from kubemeta.core.tag_parser import TagParser
from kubemeta.errors import CacheUnavailable, MalformedResponse, ParseMismatch, TransportFailure
from kubemeta.providers.local_identity import LocalPodInfo
from kubemeta.resolver import KubeMetaResolver, build_resolver
from kubemeta.storage.meta_cache import MetadataCache

PATTERN = r"(?<pod_name>[^_.]+)_(?<namespace_name>[^_]+)_(?<container_name>.+)\.log$"
TAG = "kube.var.log.containers.myapp-abc123_default_myapp-xyz.log"

POD: Dict[str, Any] = {
    "kind": "Pod",
    "apiVersion": "v1",
    "metadata": {
        "name": "myapp-abc123",
        "namespace": "default",
        "uid": "u1",
        "labels": {"app": "myapp"},
        "annotations": {"team": "core"},
    },
}


def _resolver(provider: Any, cache: Optional[MetadataCache] = None) -> KubeMetaResolver:
    return KubeMetaResolver(
        parser=TagParser(PATTERN), cache=cache if cache is not None else MetadataCache(), client=provider
    )


def test_cache_miss_fetches_merges_and_populates_cache(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    cache = MetadataCache()
    resolver = _resolver(provider, cache)

    out = resolver.resolve(TAG)

    assert provider.calls == [("default", "myapp-abc123")]
    assert unpack_record(out) == {
        "pod_name": "myapp-abc123",
        "namespace_name": "default",
        "container_name": "myapp-xyz",
        "pod_id": "u1",
        "labels": {"app": "myapp"},
        "annotations": {"team": "core"},
    }
    cached, found = cache.get("default:myapp-abc123")
    assert found is True
    # Caller gets the cache-owned copy, not a transient buffer.
    assert out is cached


def test_repeated_resolution_fetches_once_and_returns_identical_bytes(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    resolver = _resolver(provider)

    first = resolver.resolve(TAG)
    for _ in range(10):
        assert resolver.resolve(TAG) is first

    assert len(provider.calls) == 1


def test_tags_sharing_a_pod_share_the_cached_record(make_provider) -> None:
    provider = make_provider({("default", "web-1"): POD})
    resolver = _resolver(provider)

    a = resolver.resolve("web-1_default_app.log")
    b = resolver.resolve("web-1_default_sidecar.log")

    # Keyed by namespace:pod, so the second container sees the first one's record.
    assert a is b
    assert unpack_record(b)["container_name"] == "app"
    assert len(provider.calls) == 1


def test_parse_mismatch_does_not_touch_cache_or_api(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    cache = MetadataCache()
    resolver = _resolver(provider, cache)

    with pytest.raises(ParseMismatch):
        resolver.resolve("syslog.auth")
    assert provider.calls == []
    assert len(cache) == 0


def test_failed_merge_caches_nothing_and_next_call_refetches(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): {"kind": "Pod"}})
    cache = MetadataCache()
    resolver = _resolver(provider, cache)

    with pytest.raises(MalformedResponse):
        resolver.resolve(TAG)
    assert cache.get("default:myapp-abc123") == (None, False)

    provider.pods[("default", "myapp-abc123")] = POD
    out = resolver.resolve(TAG)
    assert unpack_record(out)["pod_id"] == "u1"
    assert len(provider.calls) == 2


def test_transport_failure_propagates_and_caches_nothing(make_provider) -> None:
    provider = make_provider(error=TransportFailure("HTTP 403", status_code=403))
    cache = MetadataCache()
    resolver = _resolver(provider, cache)

    with pytest.raises(TransportFailure):
        resolver.resolve(TAG)
    assert len(cache) == 0


def test_tag_without_cache_key_returns_local_record_without_fetching(make_provider) -> None:
    provider = make_provider()
    cache = MetadataCache()
    resolver = KubeMetaResolver(
        parser=TagParser(r"(?<pod_name>[^_]+)_(?<container_name>.+)\.log$"), cache=cache, client=provider
    )

    out = resolver.resolve("web-1_nginx.log")

    assert unpack_record(out) == {"pod_name": "web-1", "container_name": "nginx"}
    assert provider.calls == []
    assert len(cache) == 0


def test_empty_pod_name_capture_returns_local_record_without_fetching(make_provider) -> None:
    provider = make_provider()
    cache = MetadataCache()
    resolver = KubeMetaResolver(
        parser=TagParser(r"(?<pod_name>[^_]*)_(?<namespace_name>[^_]*)_(?<container_name>.+)\.log$"),
        cache=cache,
        client=provider,
    )

    record = resolver.resolve_record("_default_app.log")

    assert record == {"pod_name": "", "namespace_name": "default", "container_name": "app"}
    assert provider.calls == []
    assert cache.get("default:") == (None, False)
    assert len(cache) == 0


def test_corrupt_cached_record_reports_cache_unavailable(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    cache = MetadataCache()
    cache.put("default:myapp-abc123", b"\xc1")
    resolver = _resolver(provider, cache)

    with pytest.raises(CacheUnavailable) as excinfo:
        resolver.resolve_record(TAG)
    assert excinfo.value.__cause__ is not None
    assert provider.calls == []


def test_closed_resolver_reports_cache_unavailable(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    resolver = _resolver(provider)
    resolver.close()

    assert provider.closed is True
    with pytest.raises(CacheUnavailable):
        resolver.resolve(TAG)


def test_concurrent_misses_may_duplicate_work_but_agree_on_content(make_provider) -> None:
    gate = threading.Event()

    class _SlowProvider(make_provider):  # type: ignore[misc, valid-type]
        def fetch(self, namespace: str, pod_name: str) -> Dict[str, Any]:
            out = super().fetch(namespace, pod_name)
            gate.wait(timeout=5)
            return out

    provider = _SlowProvider({("default", "myapp-abc123"): POD})
    cache = MetadataCache()
    resolver = _resolver(provider, cache)
    results: list = []

    def _run() -> None:
        results.append(resolver.resolve(TAG))

    threads = [threading.Thread(target=_run) for _ in range(4)]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join()

    assert len(results) == 4
    assert len(set(results)) == 1
    assert 1 <= len(provider.calls) <= 4
    assert len(cache) == 1


def test_resolve_record_decodes(make_provider) -> None:
    provider = make_provider({("default", "myapp-abc123"): POD})
    record = _resolver(provider).resolve_record(TAG)
    assert record["labels"] == {"app": "myapp"}


def test_warmup_fetches_own_pod(make_provider) -> None:
    provider = make_provider({("kube-system", "agent-0"): POD})
    _resolver(provider).warmup(LocalPodInfo(namespace="kube-system", pod_name="agent-0", token="t"))
    assert provider.calls == [("kube-system", "agent-0")]


def test_warmup_without_identity_or_with_failing_api_raises(make_provider) -> None:
    with pytest.raises(TransportFailure):
        _resolver(make_provider()).warmup(None)

    failing = make_provider(error=TransportFailure("refused"))
    with pytest.raises(TransportFailure):
        _resolver(failing).warmup(LocalPodInfo(namespace="ns", pod_name="p"))


def test_build_resolver_from_env(make_provider, monkeypatch, tmp_path) -> None:
    (tmp_path / "namespace").write_text("kube-system", encoding="utf-8")
    (tmp_path / "token").write_text("tok", encoding="utf-8")
    monkeypatch.setenv("HOSTNAME", "agent-0")
    monkeypatch.setenv("KUBE_NAMESPACE_FILE", str(tmp_path / "namespace"))
    monkeypatch.setenv("KUBE_TOKEN_FILE", str(tmp_path / "token"))
    monkeypatch.setenv("KUBE_TAG_REGEX", PATTERN)

    provider = make_provider({("kube-system", "agent-0"): POD, ("default", "myapp-abc123"): POD})
    resolver = build_resolver(load_kube_meta_config(), client=provider)

    # Warmup hits our own pod first.
    assert provider.calls == [("kube-system", "agent-0")]
    assert unpack_record(resolver.resolve(TAG))["pod_id"] == "u1"


def test_build_resolver_warmup_failure_is_raised(make_provider, monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("KUBE_NAMESPACE_FILE", str(tmp_path / "missing"))
    with pytest.raises(TransportFailure):
        build_resolver(load_kube_meta_config(), client=make_provider())


def test_build_resolver_without_warmup_skips_connectivity_check(make_provider, monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("KUBE_NAMESPACE_FILE", str(tmp_path / "missing"))
    monkeypatch.setenv("KUBE_META_WARMUP", "false")
    provider = make_provider()
    build_resolver(load_kube_meta_config(), client=provider)
    assert provider.calls == []
