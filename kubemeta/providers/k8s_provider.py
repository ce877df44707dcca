"""Kubernetes API server client for fetching Pod documents."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable
from urllib.parse import quote

import requests

from kubemeta.config import KubeMetaConfig
from kubemeta.errors import MalformedResponse, TransportFailure
from kubemeta.providers.local_identity import LocalPodInfo

logger = logging.getLogger(__name__)

USER_AGENT = "kube-meta"
POD_PATH_FMT = "/api/v1/namespaces/{namespace}/pods/{pod_name}"


@runtime_checkable
class K8sProvider(Protocol):
    def fetch(self, namespace: str, pod_name: str) -> Dict[str, Any]: ...

    def close(self) -> None: ...


def _first_wins_object(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """JSON object hook: on duplicate keys keep the first value, not the last."""
    obj: Dict[str, Any] = {}
    for k, v in pairs:
        if k not in obj:
            obj[k] = v
    return obj


def pod_uri(namespace: str, pod_name: str) -> str:
    return POD_PATH_FMT.format(namespace=quote(namespace, safe=""), pod_name=quote(pod_name, safe=""))


class ControlPlaneClient:
    """
    One GET per call against `/api/v1/namespaces/<ns>/pods/<pod>`.

    No retries: a failed fetch is reported to the caller, which decides what to do.
    """

    def __init__(
        self,
        api_url: str,
        auth_header: Optional[str] = None,
        *,
        ca_file: Optional[str] = None,
        verify_tls: bool = True,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self._verify = self._tls_verify(ca_file, verify_tls)
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

        # Built once; the token is read at startup and never refreshed.
        self._headers = {
            "User-Agent": USER_AGENT,
            "Connection": "close",
            "Accept": "application/json",
        }
        if auth_header:
            self._headers["Authorization"] = auth_header

    @staticmethod
    def _tls_verify(ca_file: Optional[str], verify_tls: bool) -> Union[bool, str]:
        if not verify_tls:
            return False
        if ca_file and os.path.isfile(ca_file):
            return ca_file
        return True

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    def fetch(self, namespace: str, pod_name: str) -> Dict[str, Any]:
        """
        Fetch the Pod resource and decode its JSON body.

        Raises:
            TransportFailure: missing namespace/pod, connection error or HTTP status other than 200.
            MalformedResponse: body is not a JSON object.
        """
        if not namespace or not pod_name:
            raise TransportFailure(f"Pod name/namespace required (ns={namespace!r}, pod={pod_name!r})")

        url = self.api_url + pod_uri(namespace, pod_name)
        try:
            resp = self._session.get(url, headers=self._headers, verify=self._verify, timeout=self.timeout_s)
        except requests.exceptions.Timeout as e:
            logger.warning("API server request timed out (ns=%s, pod=%s): %s", namespace, pod_name, e)
            raise TransportFailure(f"Timeout fetching pod {namespace}/{pod_name}")
        except requests.exceptions.RequestException as e:
            logger.warning("API server connection error (ns=%s, pod=%s): %s", namespace, pod_name, e)
            raise TransportFailure(f"Connection error fetching pod {namespace}/{pod_name}: {e}")

        logger.debug("API server (ns=%s, pod=%s) HTTP status: %s", namespace, pod_name, resp.status_code)
        if resp.status_code != 200:
            raise TransportFailure(
                f"API server returned HTTP {resp.status_code} for pod {namespace}/{pod_name}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json(object_pairs_hook=_first_wins_object)
        except ValueError as e:
            raise MalformedResponse(f"Invalid JSON body for pod {namespace}/{pod_name}: {e}")
        if not isinstance(body, dict):
            raise MalformedResponse(f"Pod {namespace}/{pod_name}: expected JSON object, got {type(body).__name__}")
        return body

    def close(self) -> None:
        if self._owns_session:
            self._session.close()


def get_k8s_provider(config: KubeMetaConfig, identity: Optional[LocalPodInfo] = None) -> K8sProvider:
    """Seam for swapping provider implementations (tests inject fakes here)."""
    auth_header = identity.auth_header if identity is not None else None
    return ControlPlaneClient(
        config.api_url,
        auth_header,
        ca_file=config.ca_file if config.api_https else None,
        verify_tls=config.verify_tls,
        timeout_s=config.timeout_s,
    )
