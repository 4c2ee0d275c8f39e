"""
Device identity resolution.

The store records which device produced a result but does not introspect
hardware itself: it calls an injected resolver once per saved result.
"""

from __future__ import annotations

import platform
from typing import Callable, NamedTuple, Tuple, Union


class DeviceIdentity(NamedTuple):
    model: str
    name: str


DeviceIdentityResolver = Callable[[], Union[DeviceIdentity, Tuple[str, str]]]


def default_device_identity() -> DeviceIdentity:
    """Hardware identifier and host name of the current machine."""
    return DeviceIdentity(
        model=platform.machine() or "unknown",
        name=platform.node() or "unknown",
    )


def static_identity(model: str, name: str) -> DeviceIdentityResolver:
    """Resolver that always returns the given identity."""
    identity = DeviceIdentity(model=model, name=name)
    return lambda: identity


__all__ = ["DeviceIdentity", "DeviceIdentityResolver", "default_device_identity", "static_identity"]
