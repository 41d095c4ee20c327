"""SSH connector — one Netmiko session per inventory host for neighbor discovery."""

from __future__ import annotations

import logging
from typing import Any

from netmiko import ConnectHandler, NetmikoAuthenticationException, NetmikoTimeoutException

from nbrmap.inventory import ResolvedHost

log = logging.getLogger(__name__)


class SSHConnector:
    """Run show commands on a single device over a Netmiko session.

    Without a password the session falls back to SSH keys and the agent.

    Usage
    -----
    >>> with SSHConnector(resolved, device_type="cisco_xe") as ssh:
    ...     output = ssh.send("show lldp neighbors detail", read_timeout=12)
    """

    def __init__(self, resolved: ResolvedHost, device_type: str, **netmiko_args: Any) -> None:
        self.resolved = resolved
        self.device_type = device_type
        self.netmiko_args = netmiko_args
        self._session = None

    def __enter__(self) -> "SSHConnector":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def connect_params(self) -> dict[str, Any]:
        """Keyword arguments handed to ``ConnectHandler``."""
        r = self.resolved
        params: dict[str, Any] = {
            "device_type": self.device_type,
            "host": r.name,
            "username": r.user,
            "port": r.port,
            "timeout": r.timeout,
        }
        if r.password:
            params["password"] = r.password
        else:
            params["use_keys"] = True
            params["allow_agent"] = True
        params.update(self.netmiko_args)
        return params

    def connect(self) -> None:
        host = self.resolved.name
        log.info("Opening SSH to %s@%s:%d (%s) …", self.resolved.user, host, self.resolved.port, self.device_type)
        try:
            self._session = ConnectHandler(**self.connect_params())
        except NetmikoAuthenticationException:
            log.error("Authentication failed for %s", host)
            raise
        except NetmikoTimeoutException:
            log.error("Timeout connecting to %s", host)
            raise

    def disconnect(self) -> None:
        if self._session is None:
            return
        self._session.disconnect()
        self._session = None
        log.info("Closed SSH to %s", self.resolved.name)

    def send(self, command: str, read_timeout: float | None = None) -> str:
        """Run *command* and return its raw output."""
        if self._session is None:
            raise RuntimeError(f"{self.resolved.name}: no open session, use SSHConnector as a context manager")
        kwargs: dict[str, Any] = {}
        if read_timeout:
            kwargs["read_timeout"] = read_timeout
        log.debug(">> %s : %s", self.resolved.name, command)
        output: str = self._session.send_command(command, **kwargs)
        log.debug("<< %s : %d bytes", self.resolved.name, len(output))
        return output

    @property
    def is_connected(self) -> bool:
        return self._session is not None and self._session.is_alive()
