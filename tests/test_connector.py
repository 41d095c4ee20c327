from __future__ import annotations

from unittest import mock

import pytest
from netmiko import NetmikoTimeoutException

from nbrmap.connector import SSHConnector
from nbrmap.inventory import Host, ResolvedHost


def _resolved(password=""):
    return ResolvedHost(host=Host(name="rtr1"), group=None, user="netops", port=2222, password=password)


@mock.patch("nbrmap.connector.ConnectHandler")
def test_key_auth_and_send(handler):
    conn = handler.return_value
    conn.send_command.return_value = "output"
    conn.is_alive.return_value = True

    with SSHConnector(_resolved(), "cisco_xe") as ssh:
        assert ssh.is_connected
        assert ssh.send("show lldp neighbors", read_timeout=8.0) == "output"

    handler.assert_called_once_with(
        device_type="cisco_xe",
        host="rtr1",
        username="netops",
        port=2222,
        timeout=30,
        use_keys=True,
        allow_agent=True,
    )
    conn.send_command.assert_called_once_with("show lldp neighbors", read_timeout=8.0)
    conn.disconnect.assert_called_once_with()
    assert not ssh.is_connected


@mock.patch("nbrmap.connector.ConnectHandler")
def test_password_auth(handler):
    with SSHConnector(_resolved("secret"), "dell_sonic", fast_cli=False):
        pass
    kwargs = handler.call_args.kwargs
    assert kwargs["password"] == "secret"
    assert kwargs["fast_cli"] is False
    assert "use_keys" not in kwargs


@mock.patch("nbrmap.connector.ConnectHandler", side_effect=NetmikoTimeoutException("timed out"))
def test_connect_errors_propagate(handler):
    with pytest.raises(NetmikoTimeoutException):
        with SSHConnector(_resolved(), "cisco_xe"):
            pass


def test_send_requires_connection():
    with pytest.raises(RuntimeError):
        SSHConnector(_resolved(), "cisco_xe").send("show version")
