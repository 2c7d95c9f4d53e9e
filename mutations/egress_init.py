# mutations/egress_init.py
from __future__ import annotations

from typing import List, Tuple

from annotations import Annotation
from config import Config
from settings import Settings

INIT_CONTAINER_NAME = "qtap-init"

# (env var, source annotation), emitted in this order
INIT_ENV: List[Tuple[str, Annotation]] = [
    ("TO_ADDR", Annotation.INIT_TO_ADDR),
    ("TO_DOMAIN", Annotation.INIT_TO_DOMAIN),
    ("PORT_MAPPING", Annotation.INIT_PORT_MAPPING),
    ("ACCEPT_UIDS", Annotation.INIT_ACCEPT_UIDS),
    ("ACCEPT_GIDS", Annotation.INIT_ACCEPT_GIDS),
]


def build_init_container(config: Config, settings: Settings) -> dict:
    """The init container that redirects the pod's egress through qtap.

    It runs as root with NET_ADMIN since it rewrites the pod's network rules.
    Some clusters also need it privileged; the run-as annotations cover that.
    """
    store = config.store

    security_context: dict = {"capabilities": {"add": ["NET_ADMIN"]}}

    run_as_user = store.get_int(Annotation.INIT_RUN_AS_USER)
    if run_as_user is not None:
        security_context["runAsUser"] = run_as_user

    run_as_group = store.get_int(Annotation.INIT_RUN_AS_GROUP)
    if run_as_group is not None:
        security_context["runAsGroup"] = run_as_group

    run_as_non_root = store.get_bool(Annotation.INIT_RUN_AS_NON_ROOT)
    if run_as_non_root is not None:
        security_context["runAsNonRoot"] = run_as_non_root

    privileged = store.get_bool(Annotation.INIT_PRIVILEGED)
    if privileged is not None:
        security_context["privileged"] = privileged

    env = []
    for name, annotation in INIT_ENV:
        value = store.get(annotation)
        if value:
            env.append({"name": name, "value": value})

    return {
        "name": INIT_CONTAINER_NAME,
        "image": f"{settings.init_image}:{store.get(Annotation.INIT_TAG)}",
        "env": env,
        "securityContext": security_context,
    }


def add_init_container(pod: dict, container: dict) -> None:
    """Prepend so it runs before any init container that relies on the redirect."""
    spec = pod.setdefault("spec", {})
    existing = [c for c in spec.get("initContainers") or [] if c.get("name") != container["name"]]
    spec["initContainers"] = [container] + existing
