# settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

INIT_IMAGE = "us-docker.pkg.dev/qpoint-edge/public/kubernetes-qtap-init"
QTAP_IMAGE = "us-docker.pkg.dev/qpoint-edge/public/qtap"
DEFAULT_ENDPOINT = "https://api.qpoint.io"
DEFAULT_OPERATOR_NAMESPACE = "qpoint"

SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
ASSETS_DIR = Path(__file__).resolve().parent / "assets"


def _current_namespace() -> Optional[str]:
    """Namespace the webhook itself runs in, from the mounted service account."""
    try:
        ns = SERVICE_ACCOUNT_NAMESPACE_FILE.read_text().strip()
    except OSError:
        return None
    return ns or None


@dataclass(frozen=True)
class Settings:
    operator_namespace: str = DEFAULT_OPERATOR_NAMESPACE
    init_image: str = INIT_IMAGE
    qtap_image: str = QTAP_IMAGE
    api_endpoint: str = DEFAULT_ENDPOINT
    http_timeout: float = 10.0
    assets_dir: Path = ASSETS_DIR
    debug: bool = False
    tls_cert: str = "/tls/tls.crt"
    tls_key: str = "/tls/tls.key"
    port: int = 8443

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.
        Operator namespace priority:
          1) NAMESPACE
          2) service account namespace file
          3) "qpoint"
        """
        env = os.environ if environ is None else environ

        operator_namespace = env.get("NAMESPACE") or _current_namespace() or DEFAULT_OPERATOR_NAMESPACE

        return cls(
            operator_namespace=operator_namespace,
            init_image=env.get("INIT_IMAGE", INIT_IMAGE),
            qtap_image=env.get("QTAP_IMAGE", QTAP_IMAGE),
            api_endpoint=(env.get("ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/"),
            http_timeout=float(env.get("HTTP_TIMEOUT", "10")),
            assets_dir=Path(env.get("CA_ASSETS_DIR") or ASSETS_DIR),
            debug=env.get("WEBHOOK_DEBUG", "0") == "1",
            tls_cert=env.get("WEBHOOK_CERT", "/tls/tls.crt"),
            tls_key=env.get("WEBHOOK_KEY", "/tls/tls.key"),
            port=int(env.get("PORT", "8443")),
        )
