#!/usr/bin/env python3
"""Resolve-only runner: prints the egress policy a pod would get, without mutating anything.

Usage:
  NAMESPACE=qpoint python3 tools/resolve.py pod.yaml

Notes:
- Uses your local kubeconfig (same behavior as app.py).
- Only reads the namespace and the default-annotation ConfigMaps.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import resolve_config  # noqa: E402
from errors import MutationError  # noqa: E402
from k8s import ClusterStore, load_kube  # noqa: E402
from settings import Settings  # noqa: E402


def main() -> int:
    if len(sys.argv) != 2:
        print("usage: resolve.py POD_MANIFEST", file=sys.stderr)
        return 2

    pod = yaml.safe_load(Path(sys.argv[1]).read_text())
    namespace = ((pod or {}).get("metadata", {}) or {}).get("namespace") or os.environ.get("POD_NAMESPACE", "default")

    settings = Settings.from_env()
    load_kube("resolve")

    try:
        cfg = resolve_config(ClusterStore(), settings, namespace, pod)
    except MutationError as e:
        print(f"[resolve] failed: {e}")
        return 1

    print(f"[resolve] namespace={cfg.namespace} egress={cfg.egress_type.value} inject-ca={cfg.inject_ca}")
    for k in sorted(cfg.annotations):
        print(f"  {k}: {cfg.annotations[k]}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
