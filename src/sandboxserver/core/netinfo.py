"""
Where the server can be reached.

The listener binds 0.0.0.0, which is useless to show to a person holding a
phone. ``local_ip_address()`` asks the kernel which interface it would use
to reach the outside world; a UDP connect sends no packets.
"""

import socket
import logging
from typing import NamedTuple


logger = logging.getLogger(__name__)

WILDCARD_HOSTS = ("", "0.0.0.0")


class ServerAddress(NamedTuple):
    """Address and port reported to the host app and /api/server-info."""

    address: str
    port: int

    @property
    def ok(self) -> bool:
        return bool(self.address)

    def to_dict(self) -> dict:
        return {"address": self.address, "port": self.port}


# Returned by SandboxServer.start() when the port could not be bound.
BIND_FAILED = ServerAddress("", 0)


def local_ip_address(fallback: str = "127.0.0.1") -> str:
    """Primary LAN address of this machine, or ``fallback``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("8.8.8.8", 80))
        return sock.getsockname()[0]
    except OSError as e:
        logger.debug(f"LAN address lookup failed, using {fallback}: {e}")
        return fallback
    finally:
        sock.close()


def advertised_address(bind_host: str, advertise_host: str = None) -> str:
    """The address to show for a listener bound to ``bind_host``."""
    if advertise_host:
        return advertise_host
    if bind_host in WILDCARD_HOSTS:
        return local_ip_address()
    return bind_host
