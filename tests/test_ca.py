from __future__ import annotations

import pytest

from config import Config
from egress import EgressType
from errors import MissingResourceError, RootCAUnavailableError
from mutations import ca
from mutations.ca import (
    BUNDLE_VOLUME,
    QTAP_BUNDLE,
    build_bundle_data,
    ensure_bundle,
    load_base_bundles,
    missing_assets,
    mount_bundle,
)


def _config() -> Config:
    return Config(egress_type=EgressType.SERVICE, namespace="ns1", operator_namespace="qpoint", inject_ca=True)


BASES = {
    "alpine-cert.pem": "ALPINE\n",
    "fedora-ca-bundle.crt": "FEDORA\n",
    "ubuntu-ca-certificates.crt": "UBUNTU\n",
}


def test_bundle_data_is_deterministic() -> None:
    first = build_bundle_data("ROOTCA_PEM", BASES)
    second = build_bundle_data("ROOTCA_PEM", dict(BASES))
    assert first == second
    assert set(first) == set(BASES)
    for key, value in first.items():
        assert value.endswith("ROOTCA_PEM\n")
        assert value == BASES[key] + "ROOTCA_PEM\n"


def test_load_base_bundles(assets_dir) -> None:
    assert load_base_bundles(assets_dir) == BASES
    (assets_dir / "fedora-ca-bundle.crt").unlink()
    with pytest.raises(MissingResourceError):
        load_base_bundles(assets_dir)


def test_missing_assets(assets_dir, tmp_path) -> None:
    assert missing_assets(assets_dir) == []
    (assets_dir / "alpine-cert.pem").unlink()
    assert missing_assets(assets_dir) == [assets_dir / "alpine-cert.pem"]
    assert len(missing_assets(tmp_path / "nowhere")) == 3


def test_existing_bundle_is_left_alone(store, settings) -> None:
    store.configmaps[("ns1", QTAP_BUNDLE)] = {"alpine-cert.pem": "old"}
    ensure_bundle(store, settings, _config())
    assert store.created == []
    assert store.configmaps[("ns1", QTAP_BUNDLE)] == {"alpine-cert.pem": "old"}


def test_bundle_created_from_local_root_ca(store, settings) -> None:
    ensure_bundle(store, settings, _config())
    assert store.configmaps[("ns1", QTAP_BUNDLE)] == build_bundle_data("ROOTCA_PEM", BASES)


def test_create_race_is_not_an_error(store, settings, monkeypatch) -> None:
    # another admission created it between our read and our create
    real_get = store.get_configmap

    def get_configmap(namespace, name):
        if (namespace, name) == ("ns1", QTAP_BUNDLE):
            store.configmaps[("ns1", QTAP_BUNDLE)] = {"alpine-cert.pem": "theirs"}
            return None
        return real_get(namespace, name)

    monkeypatch.setattr(store, "get_configmap", get_configmap)
    ensure_bundle(store, settings, _config())
    assert store.configmaps[("ns1", QTAP_BUNDLE)] == {"alpine-cert.pem": "theirs"}


def test_root_ca_fetched_remotely_when_configmap_missing(store, settings, monkeypatch) -> None:
    del store.configmaps[("qpoint", "qpoint-qtap-ca.crt")]
    calls = []

    def fake_fetch(token, endpoint, timeout):
        calls.append((token, endpoint))
        return "REMOTE_PEM"

    monkeypatch.setattr(ca, "fetch_registration", fake_fetch)
    ensure_bundle(store, settings, _config())

    assert calls == [("s3cr3t", "https://api.example.test")]
    assert store.configmaps[("ns1", QTAP_BUNDLE)]["ubuntu-ca-certificates.crt"] == "UBUNTU\nREMOTE_PEM\n"


def test_remote_failure_is_fatal(store, settings, monkeypatch) -> None:
    del store.configmaps[("qpoint", "qpoint-qtap-ca.crt")]

    def fake_fetch(token, endpoint, timeout):
        raise RootCAUnavailableError("request failed, status 401")

    monkeypatch.setattr(ca, "fetch_registration", fake_fetch)
    with pytest.raises(RootCAUnavailableError):
        ensure_bundle(store, settings, _config())
    assert store.created == []


def test_remote_fallback_needs_token(store, settings) -> None:
    del store.configmaps[("qpoint", "qpoint-qtap-ca.crt")]
    del store.secrets[("qpoint", "token")]
    with pytest.raises(MissingResourceError):
        ensure_bundle(store, settings, _config())


def test_empty_root_ca_configmap_is_fatal(store, settings) -> None:
    store.configmaps[("qpoint", "qpoint-qtap-ca.crt")] = {}
    with pytest.raises(MissingResourceError):
        ensure_bundle(store, settings, _config())


def test_mount_bundle_reaches_every_container() -> None:
    pod = {
        "spec": {
            "initContainers": [{"name": "qtap-init"}],
            "containers": [
                {"name": "qtap"},
                {"name": "web", "volumeMounts": [{"name": "data", "mountPath": "/data"}]},
            ],
            "volumes": [{"name": "data", "emptyDir": {}}],
        }
    }
    mount_bundle(pod)

    assert pod["spec"]["volumes"] == [
        {"name": "data", "emptyDir": {}},
        {"name": BUNDLE_VOLUME, "configMap": {"name": QTAP_BUNDLE}},
    ]
    for c in pod["spec"]["initContainers"] + pod["spec"]["containers"]:
        mounts = [m for m in c["volumeMounts"] if m["name"] == BUNDLE_VOLUME]
        assert mounts == [
            {"name": BUNDLE_VOLUME, "mountPath": "/etc/ssl/cert.pem", "subPath": "alpine-cert.pem"},
            {"name": BUNDLE_VOLUME, "mountPath": "/etc/pki/tls/certs/ca-bundle.crt", "subPath": "fedora-ca-bundle.crt"},
            {"name": BUNDLE_VOLUME, "mountPath": "/etc/ssl/certs/ca-certificates.crt", "subPath": "ubuntu-ca-certificates.crt"},
        ]
    assert pod["spec"]["containers"][1]["volumeMounts"][0] == {"name": "data", "mountPath": "/data"}


def test_mount_bundle_twice_adds_nothing() -> None:
    pod = {"spec": {"containers": [{"name": "web"}]}}
    mount_bundle(pod)
    once = repr(pod)
    mount_bundle(pod)
    assert repr(pod) == once
