"""Per-machine identifier used to build the connection origin and URL.

The identifier is the hardware address of the first usable network
interface, e.g. "3C:22:FB:12:34:56".
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

log = logging.getLogger(__name__)

_NULL_ADDRESS = "00:00:00:00:00:00"


class IdentityUnavailable(RuntimeError):
    """No hardware identifier could be found. Not transient; do not retry."""


def _candidate_addresses() -> Iterable[str]:
    """Yield hardware addresses of interfaces that are up, running and not loopback."""
    from PyQt6.QtNetwork import QNetworkInterface

    flag = QNetworkInterface.InterfaceFlag
    for iface in QNetworkInterface.allInterfaces():
        flags = iface.flags()
        if flags & flag.IsLoopBack:
            continue
        if not (flags & flag.IsUp and flags & flag.IsRunning):
            continue
        yield iface.hardwareAddress()


def resolve(override: Optional[str] = None) -> str:
    """Return the machine identifier.

    A non-empty `override` (the `machine_id` config key) wins over hardware lookup.
    Raises IdentityUnavailable if no usable address exists.
    """
    if override and override.strip():
        return override.strip()

    for addr in _candidate_addresses():
        addr = (addr or "").strip()
        if not addr or addr == _NULL_ADDRESS:
            continue
        log.debug("Resolved machine id %s", addr)
        return addr

    raise IdentityUnavailable("No network interface with a hardware address found")
