# mutate.py
from __future__ import annotations

import copy

from config import Config, resolve_config
from egress import EgressType
from mutations.ca import ensure_bundle, mount_bundle
from mutations.egress_init import add_init_container, build_init_container
from mutations.sidecar import add_sidecar_container, build_sidecar_container, lookup_token
from settings import Settings


def mutate(store, settings: Settings, namespace: str, pod: dict) -> dict:
    """Return a copy of pod with qtap egress wired in according to its policy.

    Steps run strictly in order: resolve -> build containers -> ensure the CA
    bundle -> apply. Containers are built before anything is written to the
    copy, so a bad annotation never leaves a half-mutated pod behind.
    """
    out = copy.deepcopy(pod)

    config = resolve_config(store, settings, namespace, out)
    if config.egress_type in (EgressType.UNDEFINED, EgressType.DISABLED):
        if settings.debug:
            print(f"[mutate] egress={config.egress_type.value}, pod left as is")
        return out

    init_container = build_init_container(config, settings)

    sidecar = None
    if config.egress_type == EgressType.INJECT:
        token = lookup_token(store, config.operator_namespace)
        sidecar = build_sidecar_container(config, settings, out, token)

    if config.inject_ca:
        ensure_bundle(store, settings, config)

    _apply(out, config, init_container, sidecar)
    return out


def _apply(pod: dict, config: Config, init_container: dict, sidecar) -> None:
    pod.setdefault("metadata", {})["annotations"] = dict(config.annotations)

    add_init_container(pod, init_container)
    if sidecar is not None:
        add_sidecar_container(pod, sidecar)

    # mounts go on last so they reach the containers added above
    if config.inject_ca:
        mount_bundle(pod)
