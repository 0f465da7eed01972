import socket
from unittest import mock

import pytest

from google_auth_wizard.exceptions import PortAllocationError
from google_auth_wizard.ports import find_available_port, is_port_available


@pytest.fixture
def occupied_port():
    """A port held by a listening socket for the duration of the test."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


def _free_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def test_occupied_port_is_not_available(occupied_port):
    assert is_port_available(occupied_port) is False


def test_returns_start_when_free():
    port = _free_port()
    assert find_available_port(port, 1) == port


def test_probe_releases_the_port():
    port = _free_port()
    assert is_port_available(port)
    # A second probe would fail if the first one kept the port bound.
    assert is_port_available(port)


def test_returns_first_available_in_window():
    with mock.patch(
        "google_auth_wizard.ports.is_port_available",
        side_effect=[False, False, True],
    ) as probe:
        assert find_available_port(9000, 5) == 9002

    assert [c.args[0] for c in probe.call_args_list] == [9000, 9001, 9002]


def test_no_port_available(occupied_port):
    with pytest.raises(PortAllocationError) as exc_info:
        find_available_port(occupied_port, 1)

    assert exc_info.value.start == occupied_port
    assert exc_info.value.max_tries == 1
    assert f"{occupied_port}-{occupied_port}" in str(exc_info.value)


def test_window_is_never_exceeded():
    with mock.patch(
        "google_auth_wizard.ports.is_port_available", return_value=False
    ) as probe:
        with pytest.raises(PortAllocationError):
            find_available_port(9000, 3)

    assert probe.call_count == 3


def test_zero_tries_fails_without_probing():
    with mock.patch("google_auth_wizard.ports.is_port_available") as probe:
        with pytest.raises(PortAllocationError):
            find_available_port(9000, 0)

    probe.assert_not_called()
