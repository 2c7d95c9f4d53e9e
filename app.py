# app.py
from __future__ import annotations

import base64

import jsonpatch
from flask import Flask, jsonify, request

from errors import MutationError
from k8s import ClusterStore, load_kube
from mutate import mutate
from mutations.ca import missing_assets
from settings import Settings

MUTATE_PATH = "/mutate-v1-pod"


# ─────────────────────────────────────────────
# AdmissionReview helpers
# ─────────────────────────────────────────────
def review_response(uid: str, allowed: bool, patch=None, code: int = 200, message: str = "") -> dict:
    response: dict = {"uid": uid, "allowed": allowed}
    if patch:
        response["patchType"] = "JSONPatch"
        response["patch"] = base64.b64encode(patch.to_string().encode()).decode()
    if not allowed:
        response["status"] = {"code": code, "message": message}
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": response,
    }


def _bad_request(message: str):
    return jsonify({"error": message}), 400


# ─────────────────────────────────────────────
# App
# ─────────────────────────────────────────────
def create_app(store, settings: Settings) -> Flask:
    app = Flask(__name__)

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return "ok", 200

    @app.route(MUTATE_PATH, methods=["POST"])
    def mutate_pod():
        review = request.get_json(silent=True)
        if not isinstance(review, dict) or not isinstance(review.get("request"), dict):
            return _bad_request("expected an AdmissionReview")

        req = review["request"]
        uid = req.get("uid", "")
        pod = req.get("object")
        kind = (req.get("kind") or {}).get("kind", "Pod")
        if kind != "Pod" or not isinstance(pod, dict):
            return _bad_request(f"[{uid}] expected a Pod object, got {kind}")

        namespace = req.get("namespace") or (pod.get("metadata", {}) or {}).get("namespace") or ""
        print(f"[webhook] [{uid}] pod mutation requested namespace={namespace}")

        try:
            mutated = mutate(store, settings, namespace, pod)
        except MutationError as e:
            print(f"[webhook] [{uid}] mutation failed: {e}")
            return jsonify(review_response(uid, False, code=500, message=str(e)))

        patch = jsonpatch.JsonPatch.from_diff(pod, mutated)
        if settings.debug:
            print(f"[webhook] [{uid}] patch ops={len(patch.patch)}")
        if not patch:
            print(f"[webhook] [{uid}] qpoint egress not enabled, ignoring")
        return jsonify(review_response(uid, True, patch=patch))

    return app


# ─────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────
def main() -> None:
    settings = Settings.from_env()
    load_kube()

    app = create_app(ClusterStore(), settings)
    print(f"[webhook] operator namespace={settings.operator_namespace} port={settings.port}")
    missing = missing_assets(settings.assets_dir)
    if missing:
        # pods asking for inject-ca will be denied until CA_ASSETS_DIR holds these
        print(f"[webhook] WARNING: CA bundle assets missing: {', '.join(str(p) for p in missing)} (set CA_ASSETS_DIR)")
    app.run(
        host="0.0.0.0",
        port=settings.port,
        ssl_context=(settings.tls_cert, settings.tls_key),
    )


if __name__ == "__main__":
    main()
