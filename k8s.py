# k8s.py
from __future__ import annotations

import base64
from typing import Dict, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from errors import ClusterReadError, ClusterWriteError


def load_kube(prefix: str = "webhook") -> None:
    try:
        config.load_incluster_config()
        print(f"[{prefix}] using in-cluster config")
    except config.ConfigException:
        config.load_kube_config()
        print(f"[{prefix}] using kubeconfig (local)")


class ClusterStore:
    """The only reads/writes the mutation pipeline makes against the cluster."""

    def __init__(self, corev1=None, dry_run: bool = False):
        self.api = corev1 if corev1 is not None else client.CoreV1Api()
        self.dry_run = dry_run

    def get_namespace(self, name: str) -> Optional[dict]:
        try:
            return self.api.read_namespace(name).to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            raise ClusterReadError(f"reading namespace '{name}': {e.status} {e.reason}") from e

    def get_configmap(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        """Return the ConfigMap's data, or None when it does not exist."""
        try:
            cm = self.api.read_namespaced_config_map(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise ClusterReadError(
                f"reading configmap '{name}' in namespace '{namespace}': {e.status} {e.reason}"
            ) from e
        return dict(cm.data or {})

    def create_configmap(self, namespace: str, name: str, data: Dict[str, str]) -> bool:
        """Create a ConfigMap. Returns False if it already existed."""
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            data=data,
        )
        kwargs = {"dry_run": "All"} if self.dry_run else {}
        try:
            self.api.create_namespaced_config_map(namespace, body, **kwargs)
        except ApiException as e:
            if e.status == 409:
                return False
            raise ClusterWriteError(
                f"creating configmap '{name}' in namespace '{namespace}': {e.status} {e.reason}"
            ) from e
        return True

    def get_secret(self, namespace: str, name: str) -> Optional[Dict[str, bytes]]:
        """Return the Secret's data (base64 decoded), or None when it does not exist."""
        try:
            secret = self.api.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise ClusterReadError(
                f"reading secret '{name}' in namespace '{namespace}': {e.status} {e.reason}"
            ) from e
        return {k: base64.b64decode(v) for k, v in (secret.data or {}).items()}
