from __future__ import annotations

import os
from dataclasses import dataclass

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"

KUBE_URL_DEFAULT = "https://kubernetes.default.svc:443"
KUBE_CA_FILE_DEFAULT = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
KUBE_TOKEN_FILE_DEFAULT = f"{SERVICE_ACCOUNT_DIR}/token"
KUBE_NAMESPACE_FILE_DEFAULT = f"{SERVICE_ACCOUNT_DIR}/namespace"

# /var/log/containers/<pod>_<namespace>_<container>-<container id>.log
KUBE_TAG_REGEX_DEFAULT = (
    r"var\.log\.containers\."
    r"(?<pod_name>[a-z0-9](?:[-a-z0-9]*[a-z0-9])?(?:\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*)"
    r"_(?<namespace_name>[^_]+)_(?<container_name>.+)-(?<docker_id>[a-z0-9]{64})\.log$"
)

KUBE_TIMEOUT_SECONDS_DEFAULT = 10.0


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


@dataclass(frozen=True)
class KubeMetaConfig:
    # API server
    api_url: str
    ca_file: str
    verify_tls: bool
    timeout_s: float

    # Local identity bootstrap
    token_file: str
    namespace_file: str

    # Tag handling
    tag_regex: str

    # Check the API server with our own pod on startup
    warmup: bool

    @property
    def api_https(self) -> bool:
        return self.api_url.lower().startswith("https://")


def load_kube_meta_config() -> KubeMetaConfig:
    api_url = _env_str("KUBE_URL", KUBE_URL_DEFAULT).rstrip("/")

    try:
        timeout_s = float((os.getenv("KUBE_TIMEOUT_SECONDS") or "").strip() or KUBE_TIMEOUT_SECONDS_DEFAULT)
        timeout_s = max(1.0, min(60.0, timeout_s))
    except Exception:
        timeout_s = KUBE_TIMEOUT_SECONDS_DEFAULT

    # The regex is taken verbatim: surrounding whitespace can be significant.
    tag_regex = os.getenv("KUBE_TAG_REGEX") or KUBE_TAG_REGEX_DEFAULT

    return KubeMetaConfig(
        api_url=api_url,
        ca_file=_env_str("KUBE_CA_FILE", KUBE_CA_FILE_DEFAULT),
        verify_tls=_env_bool("KUBE_VERIFY_TLS", True),
        timeout_s=timeout_s,
        token_file=_env_str("KUBE_TOKEN_FILE", KUBE_TOKEN_FILE_DEFAULT),
        namespace_file=_env_str("KUBE_NAMESPACE_FILE", KUBE_NAMESPACE_FILE_DEFAULT),
        tag_regex=tag_regex,
        warmup=_env_bool("KUBE_META_WARMUP", True),
    )
