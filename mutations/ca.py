# mutations/ca.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

from config import Config
from errors import MissingResourceError
from mutations.sidecar import lookup_token
from registration import fetch_registration
from settings import Settings

QTAP_BUNDLE = "qtap-ca-bundle.crt"
QPOINT_ROOT_CA = "qpoint-qtap-ca.crt"
ROOT_CA_KEY = "ca.crt"
BUNDLE_VOLUME = "qtap-ca-bundle-volume"

# (configmap key / asset file, mount path)
BUNDLE_MOUNTS: List[Tuple[str, str]] = [
    ("alpine-cert.pem", "/etc/ssl/cert.pem"),
    ("fedora-ca-bundle.crt", "/etc/pki/tls/certs/ca-bundle.crt"),
    ("ubuntu-ca-certificates.crt", "/etc/ssl/certs/ca-certificates.crt"),
]


def load_base_bundles(assets_dir: Path) -> Dict[str, str]:
    """Read the stock OS CA bundles the root CA gets appended to."""
    bundles: Dict[str, str] = {}
    for key, _ in BUNDLE_MOUNTS:
        path = Path(assets_dir) / key
        try:
            bundles[key] = path.read_text()
        except OSError as e:
            raise MissingResourceError(f"reading CA bundle asset {path}: {e}") from e
    return bundles


def missing_assets(assets_dir: Path) -> List[Path]:
    return [Path(assets_dir) / key for key, _ in BUNDLE_MOUNTS if not (Path(assets_dir) / key).is_file()]


def build_bundle_data(root_ca: str, base_bundles: Dict[str, str]) -> Dict[str, str]:
    return {key: f"{base_bundles[key]}{root_ca}\n" for key, _ in BUNDLE_MOUNTS}


def resolve_root_ca(store, settings: Settings, operator_namespace: str) -> str:
    data = store.get_configmap(operator_namespace, QPOINT_ROOT_CA)
    if data is not None:
        ca = data.get(ROOT_CA_KEY)
        if not ca:
            raise MissingResourceError(
                f"configmap '{QPOINT_ROOT_CA}' in namespace '{operator_namespace}' has no '{ROOT_CA_KEY}'"
            )
        return ca

    # no local copy; ask the registration API with the operator's token
    print(f"[ca] configmap '{QPOINT_ROOT_CA}' not found in '{operator_namespace}', fetching from {settings.api_endpoint}")
    token = lookup_token(store, operator_namespace)
    return fetch_registration(token, settings.api_endpoint, settings.http_timeout)


def ensure_bundle(store, settings: Settings, config: Config) -> None:
    """Make sure the namespace has the CA bundle ConfigMap. Never updates an existing one."""
    if store.get_configmap(config.namespace, QTAP_BUNDLE) is not None:
        return

    root_ca = resolve_root_ca(store, settings, config.operator_namespace)
    data = build_bundle_data(root_ca, load_base_bundles(settings.assets_dir))

    if store.create_configmap(config.namespace, QTAP_BUNDLE, data):
        print(f"[ca] created configmap '{QTAP_BUNDLE}' in namespace '{config.namespace}'")
    else:
        print(f"[ca] configmap '{QTAP_BUNDLE}' already created in namespace '{config.namespace}'")


def mount_bundle(pod: dict) -> None:
    """Mount the bundle over the OS trust stores of every container.

    Must run after all containers have been added to the pod.
    """
    spec = pod.setdefault("spec", {})

    volumes = spec.get("volumes") or []
    if not any(v.get("name") == BUNDLE_VOLUME for v in volumes):
        volumes.append({"name": BUNDLE_VOLUME, "configMap": {"name": QTAP_BUNDLE}})
    spec["volumes"] = volumes

    for kind in ("initContainers", "containers"):
        for c in spec.get(kind) or []:
            mounts = c.get("volumeMounts") or []
            present = {m.get("mountPath") for m in mounts}
            for key, path in BUNDLE_MOUNTS:
                if path not in present:
                    mounts.append({"name": BUNDLE_VOLUME, "mountPath": path, "subPath": key})
            c["volumeMounts"] = mounts
