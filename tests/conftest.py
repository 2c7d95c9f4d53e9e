from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest

from errors import ClusterReadError
from settings import Settings

SERVICE_DEFAULTS = """\
qpoint.io/inject-ca: "true"
qpoint.io/qtap-init-tag: v0.0.9
qpoint.io/qtap-init-egress-port-mapping: "10080:80,10443:443"
qpoint.io/qtap-init-egress-accept-uids: "1010"
qpoint.io/qtap-init-egress-to-domain: qtap-gateway.qpoint.svc.cluster.local
"""

INJECT_DEFAULTS = """\
qpoint.io/inject-ca: "false"
qpoint.io/qtap-init-tag: v0.0.9
qpoint.io/qtap-tag: v0.1.2
qpoint.io/qtap-init-egress-port-mapping: "10080:80,10443:443"
qpoint.io/qtap-init-egress-accept-uids: "1010"
qpoint.io/qtap-uid: "1010"
qpoint.io/qtap-gid: "1010"
qpoint.io/qtap-log-level: info
"""


class FakeStore:
    """In-memory stand-in for k8s.ClusterStore."""

    def __init__(self) -> None:
        self.namespaces: Dict[str, dict] = {}
        self.configmaps: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.secrets: Dict[Tuple[str, str], Dict[str, bytes]] = {}
        self.created: list = []
        self.reads: list = []
        self.fail_reads = False

    def add_namespace(self, name: str, labels: Optional[dict] = None) -> None:
        self.namespaces[name] = {"metadata": {"name": name, "labels": labels or {}}}

    def get_namespace(self, name: str) -> Optional[dict]:
        self.reads.append(("namespace", name))
        if self.fail_reads:
            raise ClusterReadError(f"reading namespace '{name}': 503 Service Unavailable")
        return self.namespaces.get(name)

    def get_configmap(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        self.reads.append(("configmap", namespace, name))
        if self.fail_reads:
            raise ClusterReadError(f"reading configmap '{name}': 503 Service Unavailable")
        data = self.configmaps.get((namespace, name))
        return dict(data) if data is not None else None

    def create_configmap(self, namespace: str, name: str, data: Dict[str, str]) -> bool:
        self.created.append((namespace, name, dict(data)))
        if (namespace, name) in self.configmaps:
            return False
        self.configmaps[(namespace, name)] = dict(data)
        return True

    def get_secret(self, namespace: str, name: str) -> Optional[Dict[str, bytes]]:
        self.reads.append(("secret", namespace, name))
        return self.secrets.get((namespace, name))


@pytest.fixture
def assets_dir(tmp_path: Path) -> Path:
    (tmp_path / "alpine-cert.pem").write_text("ALPINE\n")
    (tmp_path / "fedora-ca-bundle.crt").write_text("FEDORA\n")
    (tmp_path / "ubuntu-ca-certificates.crt").write_text("UBUNTU\n")
    return tmp_path


@pytest.fixture
def settings(assets_dir: Path) -> Settings:
    return Settings(operator_namespace="qpoint", assets_dir=assets_dir, api_endpoint="https://api.example.test")


@pytest.fixture
def store() -> FakeStore:
    s = FakeStore()
    s.add_namespace("qpoint")
    s.configmaps[("qpoint", "qtap-operator-service-pod-annotations-configmap")] = {"annotations.yaml": SERVICE_DEFAULTS}
    s.configmaps[("qpoint", "qtap-operator-inject-pod-annotations-configmap")] = {"annotations.yaml": INJECT_DEFAULTS}
    s.configmaps[("qpoint", "qpoint-qtap-ca.crt")] = {"ca.crt": "ROOTCA_PEM"}
    s.secrets[("qpoint", "token")] = {"token": b"s3cr3t"}
    return s
