# errors.py
from __future__ import annotations


class MutationError(Exception):
    """Anything that should stop a pod from being admitted."""


class PolicyResolutionError(MutationError):
    """Resolving the egress policy for a pod failed."""


class ConfigurationError(PolicyResolutionError):
    """A default-annotations ConfigMap is missing or malformed."""


class ClusterReadError(MutationError):
    pass


class ClusterWriteError(MutationError):
    pass


class MissingResourceError(MutationError):
    """A resource the operator needs (token, root CA, assets) is absent."""


class RootCAUnavailableError(MissingResourceError):
    pass


class MalformedAnnotationError(MutationError):
    def __init__(self, key: str, value: str, reason: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"annotation {key}={value!r}: {reason}")
