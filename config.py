# config.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import yaml

from annotations import Annotation, AnnotationStore
from egress import EgressType, compute_egress_type
from errors import ClusterReadError, ConfigurationError, PolicyResolutionError
from settings import Settings

SERVICE_ANNOTATIONS_CONFIGMAP = "qtap-operator-service-pod-annotations-configmap"
INJECT_ANNOTATIONS_CONFIGMAP = "qtap-operator-inject-pod-annotations-configmap"
ANNOTATIONS_KEY = "annotations.yaml"

DEFAULTS_CONFIGMAPS = {
    EgressType.SERVICE: SERVICE_ANNOTATIONS_CONFIGMAP,
    EgressType.INJECT: INJECT_ANNOTATIONS_CONFIGMAP,
}


@dataclass(frozen=True)
class Config:
    egress_type: EgressType
    namespace: str
    operator_namespace: str
    inject_ca: bool = False
    annotations: Dict[str, str] = field(default_factory=dict)

    @property
    def store(self) -> AnnotationStore:
        return AnnotationStore(self.annotations)

    def get(self, annotation: Annotation) -> str:
        return self.store.get(annotation)


def _scalar(value) -> Optional[str]:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def parse_default_annotations(text: str, source: str) -> Dict[str, str]:
    """Parse an annotations.yaml document as a flat string -> string mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"parsing {source} as yaml: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source} must be a mapping, got {type(data).__name__}")

    out: Dict[str, str] = {}
    for k, v in data.items():
        s = _scalar(v)
        if not isinstance(k, str) or s is None:
            raise ConfigurationError(f"{source}: entry {k!r} is not a string -> string pair")
        out[k] = s
    return out


def load_default_annotations(store, operator_namespace: str, egress_type: EgressType) -> Dict[str, str]:
    name = DEFAULTS_CONFIGMAPS[egress_type]
    try:
        data = store.get_configmap(operator_namespace, name)
    except ClusterReadError as e:
        raise PolicyResolutionError(f"fetching default annotations: {e}") from e

    if data is None:
        raise ConfigurationError(f"configmap '{name}' not found in namespace '{operator_namespace}'")
    if ANNOTATIONS_KEY not in data:
        raise ConfigurationError(f"configmap '{name}' in namespace '{operator_namespace}' has no '{ANNOTATIONS_KEY}'")

    return parse_default_annotations(data[ANNOTATIONS_KEY], f"configmap '{name}'")


def merge_defaults(annotations: Optional[Mapping[str, str]], defaults: Mapping[str, str]) -> Dict[str, str]:
    """Fill in defaults for keys the pod does not already declare."""
    merged = dict(annotations or {})
    for k, v in defaults.items():
        if k not in merged:
            merged[k] = v
    return merged


def resolve_config(store, settings: Settings, namespace: str, pod: dict) -> Config:
    try:
        ns_obj = store.get_namespace(namespace)
    except ClusterReadError as e:
        raise PolicyResolutionError(f"fetching namespace '{namespace}': {e}") from e

    egress_type = compute_egress_type(ns_obj, pod)

    base = Config(
        egress_type=egress_type,
        namespace=namespace,
        operator_namespace=settings.operator_namespace,
    )
    if egress_type in (EgressType.UNDEFINED, EgressType.DISABLED):
        return base

    defaults = load_default_annotations(store, settings.operator_namespace, egress_type)
    pod_annotations = ((pod or {}).get("metadata", {}) or {}).get("annotations")
    merged = merge_defaults(pod_annotations, defaults)

    return Config(
        egress_type=egress_type,
        namespace=namespace,
        operator_namespace=settings.operator_namespace,
        inject_ca=merged.get(Annotation.INJECT_CA.key) == "true",
        annotations=merged,
    )
