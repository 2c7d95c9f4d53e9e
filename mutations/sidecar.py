# mutations/sidecar.py
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from annotations import Annotation
from config import Config
from errors import MalformedAnnotationError, MissingResourceError
from settings import Settings

SIDECAR_CONTAINER_NAME = "qtap"
TOKEN_SECRET = "token"
TOKEN_KEY = "token"
DEFAULT_STATUS_PORT = 10001

# decimal, 0x/0o/0b prefixed, or leading-zero octal
_PORT_RE = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+|0[0-7]*|[1-9][0-9]*")

# (env var, source annotation), emitted in this order after TOKEN
SIDECAR_ENV: List[Tuple[str, Annotation]] = [
    ("LOG_LEVEL", Annotation.LOG_LEVEL),
    ("LOG_ENCODING", Annotation.LOG_ENCODING),
    ("LOG_CALLER", Annotation.LOG_CALLER),
    ("EGRESS_HTTP_LISTEN", Annotation.HTTP_LISTEN),
    ("EGRESS_HTTPS_LISTEN", Annotation.HTTPS_LISTEN),
    ("STATUS_LISTEN", Annotation.STATUS_LISTEN),
    ("BLOCK_UNKNOWN", Annotation.BLOCK_UNKNOWN),
    ("ENVOY_LOG_LEVEL", Annotation.ENVOY_LOG_LEVEL),
    ("DNS_LOOKUP_FAMILY", Annotation.DNS_LOOKUP_FAMILY),
    ("ENDPOINT", Annotation.API_ENDPOINT),
]


def lookup_token(store, operator_namespace: str) -> str:
    secret = store.get_secret(operator_namespace, TOKEN_SECRET)
    if secret is None:
        raise MissingResourceError(f"secret '{TOKEN_SECRET}' not found in namespace '{operator_namespace}'")
    token = secret.get(TOKEN_KEY)
    if not token:
        raise MissingResourceError(f"key '{TOKEN_KEY}' not found in secret '{TOKEN_SECRET}'")
    if not isinstance(token, bytes):
        return str(token)
    try:
        return token.decode()
    except UnicodeDecodeError as e:
        raise MissingResourceError(f"key '{TOKEN_KEY}' in secret '{TOKEN_SECRET}' is not valid utf-8") from e


def split_host_port(addr: str) -> Optional[Tuple[str, str]]:
    """host:port or [host]:port. None if addr is not of that form."""
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0 or addr[end + 1:end + 2] != ":":
            return None
        host, port = addr[1:end], addr[end + 2:]
        if "[" in host or "]" in port:
            return None
        return host, port
    if addr.count(":") != 1:
        return None
    host, port = addr.split(":")
    return host, port


def status_port(listen: str) -> int:
    if not listen:
        return DEFAULT_STATUS_PORT
    parts = split_host_port(listen)
    if parts is None:
        return DEFAULT_STATUS_PORT
    _, port = parts
    if not _PORT_RE.fullmatch(port):
        raise MalformedAnnotationError(Annotation.STATUS_LISTEN.key, listen, "invalid port")
    if port[:2] in ("0x", "0X"):
        n = int(port[2:], 16)
    elif port[:2] in ("0b", "0B"):
        n = int(port[2:], 2)
    elif port[:2] in ("0o", "0O"):
        n = int(port[2:], 8)
    elif port.startswith("0"):
        n = int(port, 8)
    else:
        n = int(port)
    if not 0 < n <= 65535:
        raise MalformedAnnotationError(Annotation.STATUS_LISTEN.key, listen, "port out of range")
    return n


def _probe(path: str, port: int, period: int, failure_threshold: int) -> dict:
    return {
        "httpGet": {"path": path, "port": port},
        "initialDelaySeconds": 3,
        "periodSeconds": period,
        "timeoutSeconds": 2,
        "successThreshold": 1,
        "failureThreshold": failure_threshold,
    }


def build_tags(config: Config, pod: dict) -> str:
    """namespace:<ns> followed by every label whose key matches a filter.

    A label matching several filters is repeated once per filter.
    """
    meta = (pod or {}).get("metadata", {}) or {}
    tags = [f"namespace:{meta.get('namespace') or config.namespace}"]

    filters = config.get(Annotation.TAGS_FILTER)
    if filters:
        regexps = []
        for f in filters.split(","):
            try:
                regexps.append(re.compile(f))
            except re.error as e:
                raise MalformedAnnotationError(
                    Annotation.TAGS_FILTER.key, filters, f"invalid regular expression {f!r}: {e}"
                ) from e

        for k, v in (meta.get("labels", {}) or {}).items():
            for r in regexps:
                if r.search(k):
                    tags.append(f"{k}:{v}")

    return ",".join(tags)


def build_sidecar_container(config: Config, settings: Settings, pod: dict, token: str) -> dict:
    store = config.store

    # None is "not set"; 0 is a valid uid/gid
    uid = store.get_int(Annotation.UID)
    gid = store.get_int(Annotation.GID)

    security_context = None
    if uid is not None or gid is not None:
        security_context = {}
        if uid is not None:
            security_context["runAsUser"] = uid
        if gid is not None:
            security_context["runAsGroup"] = gid

    port = status_port(store.get(Annotation.STATUS_LISTEN))

    env = [{"name": "TOKEN", "value": token}]
    for name, annotation in SIDECAR_ENV:
        value = store.get(annotation)
        if value:
            env.append({"name": name, "value": value})
    env.append({"name": "TAGS", "value": build_tags(config, pod)})

    container = {
        "name": SIDECAR_CONTAINER_NAME,
        "image": f"{settings.qtap_image}:{store.get(Annotation.TAG)}",
        "args": ["gateway"],
        "env": env,
        "startupProbe": _probe("/readyz", port, period=5, failure_threshold=20),
        "readinessProbe": _probe("/readyz", port, period=5, failure_threshold=1),
        "livenessProbe": _probe("/healthz", port, period=10, failure_threshold=3),
    }
    if security_context is not None:
        container["securityContext"] = security_context
    return container


def add_sidecar_container(pod: dict, container: dict) -> None:
    spec = pod.setdefault("spec", {})
    existing = [c for c in spec.get("containers") or [] if c.get("name") != container["name"]]
    spec["containers"] = [container] + existing
