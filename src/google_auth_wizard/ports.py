"""Local TCP port allocation for the OAuth callback listener."""

import logging
import socket

from google_auth_wizard.exceptions import PortAllocationError

logger = logging.getLogger(__name__)


def is_port_available(port: int, host: str = "") -> bool:
    """Probe a port with an exclusive bind that is released immediately."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        sock.listen(1)
    except OSError as e:
        logger.debug(f"Port {port} unavailable: {e}")
        return False
    finally:
        sock.close()
    return True


def find_available_port(start: int, max_tries: int, host: str = "") -> int:
    """Find the first bindable port in ``start .. start + max_tries - 1``.

    Args:
        start: First port to try.
        max_tries: Number of consecutive ports to try.
        host: Interface to probe. The empty string probes all interfaces.

    Returns:
        The first available port.

    Raises:
        PortAllocationError: If none of the ports in the window can be bound.
    """
    for port in range(start, start + max_tries):
        if is_port_available(port, host):
            return port
    raise PortAllocationError(start, max_tries)
