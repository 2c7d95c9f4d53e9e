#!/usr/bin/env python3
"""tools/render.py

Run the mutation pipeline against a Pod manifest and print the result.

Usage examples:
  NAMESPACE=qpoint python3 tools/render.py pod.yaml > /tmp/mutated.yaml

  # Print the JSON patch the webhook would answer with instead:
  PATCH=1 python3 tools/render.py pod.yaml

Notes:
- Reads namespaces/configmaps/secrets from the cluster (kubeconfig or in-cluster).
- CA bundle ConfigMap creation is a server-side dry run unless APPLY=1.
- CA injection reads the stock OS bundles (alpine-cert.pem, fedora-ca-bundle.crt,
  ubuntu-ca-certificates.crt) from CA_ASSETS_DIR; the repo's assets/ is empty.
"""

from __future__ import annotations

import json
import os
import sys

import jsonpatch
import yaml

# Allow executing from tools/ without installing as a package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from errors import MutationError  # noqa: E402
from k8s import ClusterStore, load_kube  # noqa: E402
from mutate import mutate  # noqa: E402
from settings import Settings  # noqa: E402


def main() -> int:
    if len(sys.argv) != 2:
        print("usage: render.py POD_MANIFEST", file=sys.stderr)
        return 2

    with open(sys.argv[1]) as f:
        pod = yaml.safe_load(f)

    namespace = ((pod or {}).get("metadata", {}) or {}).get("namespace") or os.environ.get("POD_NAMESPACE", "default")
    do_apply = os.environ.get("APPLY", "0") == "1"

    settings = Settings.from_env()
    load_kube("render")
    store = ClusterStore(dry_run=not do_apply)

    try:
        mutated = mutate(store, settings, namespace, pod)
    except MutationError as e:
        print(f"[render] mutation failed: {e}", file=sys.stderr)
        return 1

    try:
        if os.environ.get("PATCH", "0") == "1":
            patch = jsonpatch.JsonPatch.from_diff(pod, mutated)
            sys.stdout.write(json.dumps(patch.patch, indent=2) + "\n")
        else:
            yaml.safe_dump(mutated, sys.stdout, sort_keys=False)
    except BrokenPipeError:
        # Common when piping to `head`; exit cleanly
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
