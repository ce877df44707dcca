"""
Pytest config.

Tests import the local `kubemeta/` package (and `main.py`) straight from the repo
root, whether or not the project has been pip-installed. We pin the repo root on
sys.path here so a global `pytest` entrypoint behaves the same during collection.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


class FakeK8sProvider:
    """In-memory stand-in for the API server client; records every fetch."""

    def __init__(self, pods: Optional[Dict[Tuple[str, str], Any]] = None, error: Optional[Exception] = None) -> None:
        self.pods: Dict[Tuple[str, str], Any] = dict(pods or {})
        self.error = error
        self.calls: List[Tuple[str, str]] = []
        self.closed = False

    def fetch(self, namespace: str, pod_name: str) -> Dict[str, Any]:
        self.calls.append((namespace, pod_name))
        if self.error is not None:
            raise self.error
        return self.pods[(namespace, pod_name)]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_provider() -> Type[FakeK8sProvider]:
    """The fake provider class; tests build instances with their own pods/errors."""
    return FakeK8sProvider


@pytest.fixture(autouse=True)
def _isolate_kube_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer/CI KUBE_* settings from leaking into config-driven tests."""
    for name in (
        "KUBE_URL",
        "KUBE_CA_FILE",
        "KUBE_TOKEN_FILE",
        "KUBE_NAMESPACE_FILE",
        "KUBE_TAG_REGEX",
        "KUBE_VERIFY_TLS",
        "KUBE_TIMEOUT_SECONDS",
        "KUBE_META_WARMUP",
    ):
        monkeypatch.delenv(name, raising=False)
