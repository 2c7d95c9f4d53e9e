# annotations.py
from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Mapping, Optional

from errors import MalformedAnnotationError

PREFIX = "qpoint.io/"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class Annotation(str, Enum):
    EGRESS = "egress"
    INJECT_CA = "inject-ca"

    # qtap-init (egress redirection)
    INIT_TAG = "qtap-init-tag"
    INIT_RUN_AS_USER = "qtap-init-run-as-user"
    INIT_RUN_AS_GROUP = "qtap-init-run-as-group"
    INIT_RUN_AS_NON_ROOT = "qtap-init-run-as-non-root"
    INIT_PRIVILEGED = "qtap-init-run-as-privileged"
    INIT_TO_ADDR = "qtap-init-egress-to-addr"
    INIT_TO_DOMAIN = "qtap-init-egress-to-domain"
    INIT_PORT_MAPPING = "qtap-init-egress-port-mapping"
    INIT_ACCEPT_UIDS = "qtap-init-egress-accept-uids"
    INIT_ACCEPT_GIDS = "qtap-init-egress-accept-gids"

    # qtap gateway sidecar
    TAG = "qtap-tag"
    UID = "qtap-uid"
    GID = "qtap-gid"
    LOG_LEVEL = "qtap-log-level"
    LOG_ENCODING = "qtap-log-encoding"
    LOG_CALLER = "qtap-log-caller"
    HTTP_LISTEN = "qtap-egress-http-listen"
    HTTPS_LISTEN = "qtap-egress-https-listen"
    STATUS_LISTEN = "qtap-status-listen"
    BLOCK_UNKNOWN = "qtap-block-unknown"
    ENVOY_LOG_LEVEL = "qtap-envoy-log-level"
    DNS_LOOKUP_FAMILY = "qtap-dns-lookup-family"
    API_ENDPOINT = "qtap-api-endpoint"
    TAGS_FILTER = "qtap-labels-tags-filter"

    @property
    def key(self) -> str:
        return PREFIX + self.value


def parse_int(key: str, raw: str) -> int:
    """Signed 64-bit base-10 integer, no whitespace or underscores."""
    if not _INT_RE.fullmatch(raw):
        raise MalformedAnnotationError(key, raw, "not an integer")
    n = int(raw, 10)
    if n < INT64_MIN or n > INT64_MAX:
        raise MalformedAnnotationError(key, raw, "integer out of range")
    return n


def parse_bool(key: str, raw: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise MalformedAnnotationError(key, raw, "not a boolean")


class AnnotationStore:
    """Read-only view over a pod's annotations after defaults were merged."""

    def __init__(self, annotations: Optional[Mapping[str, str]] = None) -> None:
        self._annotations: Dict[str, str] = dict(annotations or {})

    def __contains__(self, annotation: Annotation) -> bool:
        return annotation.key in self._annotations

    def get(self, annotation: Annotation) -> str:
        return self._annotations.get(annotation.key, "") or ""

    def get_int(self, annotation: Annotation) -> Optional[int]:
        raw = self.get(annotation)
        if raw == "":
            return None
        return parse_int(annotation.key, raw)

    def get_bool(self, annotation: Annotation) -> Optional[bool]:
        raw = self.get(annotation)
        if raw == "":
            return None
        return parse_bool(annotation.key, raw)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._annotations)
