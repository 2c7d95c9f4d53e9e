# registration.py
"""Fetch the Qpoint root CA from the registration API.

Used only when the operator namespace has no qpoint-qtap-ca.crt ConfigMap.

    GET {endpoint}/qtap/registration
    Authorization: Bearer <token>

    200 {"registration": {"ca": "-----BEGIN CERTIFICATE-----..."}}
"""

from __future__ import annotations

import requests

from errors import RootCAUnavailableError
from settings import DEFAULT_ENDPOINT

REGISTRATION_PATH = "/qtap/registration"


def fetch_registration(token: str, endpoint: str = DEFAULT_ENDPOINT, timeout: float = 10.0) -> str:
    url = f"{endpoint.rstrip('/')}{REGISTRATION_PATH}"
    try:
        res = requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=timeout)
    except requests.RequestException as e:
        raise RootCAUnavailableError(f"fetching registration from {url}: {e}") from e

    if res.status_code != 200:
        raise RootCAUnavailableError(f"fetching registration from {url}: request failed, status {res.status_code}")

    try:
        body = res.json()
    except ValueError as e:
        raise RootCAUnavailableError(f"decoding registration response from {url}: {e}") from e

    reg = body.get("registration") if isinstance(body, dict) else None
    ca = reg.get("ca") if isinstance(reg, dict) else None
    if not isinstance(ca, str) or not ca:
        raise RootCAUnavailableError(f"registration response from {url} has no registration.ca")
    return ca
