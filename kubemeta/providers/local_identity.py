"""Identify the pod we are running in (namespace, pod name, service-account token)."""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalPodInfo:
    namespace: str
    pod_name: str
    token: str = ""

    @property
    def auth_header(self) -> Optional[str]:
        if not self.token:
            return None
        return f"Bearer {self.token}"


def _read_text(path: str) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError:
        return None


def _local_pod_name() -> str:
    hostname = (os.getenv("HOSTNAME") or "").strip()
    if hostname:
        return hostname
    return socket.gethostname()


def get_local_pod_info(namespace_file: str, token_file: str) -> Optional[LocalPodInfo]:
    """
    Load local identity from the service-account mount.

    Returns None when the namespace file can't be read: most likely we are not
    running inside a pod (e.g. talking to the API server through `kubectl proxy`).
    """
    ns = _read_text(namespace_file)
    if ns is None:
        logger.info("Cannot open %s: not running in a POD", namespace_file)
        return None

    # If a namespace was recognized, a token is expected.
    token = _read_text(token_file)
    if token is None:
        logger.warning("Cannot open %s: API requests will be unauthenticated", token_file)
        token = ""

    info = LocalPodInfo(namespace=ns.strip(), pod_name=_local_pod_name(), token=token.strip())
    logger.info("Local POD info OK (namespace=%s, pod=%s)", info.namespace, info.pod_name)
    return info
