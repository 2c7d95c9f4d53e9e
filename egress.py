# egress.py
from __future__ import annotations

from enum import Enum
from typing import Optional

from annotations import Annotation

NAMESPACE_EGRESS_LABEL = "qpoint-egress"
POD_EGRESS_LABEL = Annotation.EGRESS.key
POD_INJECT_SIDECAR_LABEL = "qpoint.io/inject-sidecar"


class EgressType(Enum):
    UNDEFINED = "undefined"
    DISABLED = "disabled"
    SERVICE = "service"
    INJECT = "inject"


# label value -> (routing on?, mode or None)
_SIGNALS = {
    "disabled": (False, None),
    "enabled": (True, None),
    "service": (True, EgressType.SERVICE),
    "inject": (True, EgressType.INJECT),
}


def _signal(value: Optional[str]):
    return _SIGNALS.get(value or "")


def _meta(obj: Optional[dict]) -> dict:
    return (obj or {}).get("metadata", {}) or {}


def pod_egress_value(pod: dict) -> Optional[str]:
    meta = _meta(pod)
    labels = meta.get("labels", {}) or {}
    if POD_EGRESS_LABEL in labels:
        return labels[POD_EGRESS_LABEL]
    return (meta.get("annotations", {}) or {}).get(POD_EGRESS_LABEL)


def compute_egress_type(namespace_obj: Optional[dict], pod: dict) -> EgressType:
    """
    Decide how a pod's egress is routed.
    On/off axis:
      1) Pod label (or annotation) qpoint.io/egress
      2) Namespace label qpoint-egress
      3) UNDEFINED
    Mode axis (only when routing is on):
      1) Pod label qpoint.io/inject-sidecar (true/false)
      2) Pod egress value service/inject
      3) Namespace egress value service/inject
      4) SERVICE
    """
    ns_signal = _signal((_meta(namespace_obj).get("labels", {}) or {}).get(NAMESPACE_EGRESS_LABEL))
    pod_signal = _signal(pod_egress_value(pod))

    winner = pod_signal or ns_signal
    if winner is None:
        return EgressType.UNDEFINED

    enabled, _ = winner
    if not enabled:
        return EgressType.DISABLED

    sidecar = ((_meta(pod).get("labels", {}) or {}).get(POD_INJECT_SIDECAR_LABEL) or "")
    if sidecar == "true":
        return EgressType.INJECT
    if sidecar == "false":
        return EgressType.SERVICE

    for sig in (pod_signal, ns_signal):
        if sig and sig[1] is not None:
            return sig[1]
    return EgressType.SERVICE
