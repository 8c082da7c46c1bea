"""Loopback address pool shared by concurrently running instances."""

from __future__ import annotations

import errno
import ipaddress
import logging
import socket
import threading
from collections.abc import Callable

from asterisk_harness.errors import AddressSpaceExhaustedError

logger = logging.getLogger(__name__)

OCTET_LIMIT = 255
DEFAULT_BASE = "127.0.0.0"
DEFAULT_HOLD_PORT = 29999


class AddressAllocator:
    """Hand out unique loopback addresses and hold a port on each.

    Addresses are never returned to the pool. Every allocated address keeps a
    listening socket on ``hold_port`` until :meth:`close`, so separate test
    processes sharing the convention skip addresses already claimed here.
    """

    def __init__(
        self,
        *,
        base: str = DEFAULT_BASE,
        hold_port: int | None = DEFAULT_HOLD_PORT,
        first_mutable_octet: int = 1,
        socket_factory: Callable[[], socket.socket] | None = None,
    ) -> None:
        if not 0 <= first_mutable_octet <= 3:
            raise ValueError("first_mutable_octet must be between 0 and 3")
        self._octets = [int(part) for part in ipaddress.IPv4Address(base).exploded.split(".")]
        self._first_mutable_octet = first_mutable_octet
        self._hold_port = hold_port
        self._socket_factory = socket_factory or _default_socket
        self._exhausted = False
        self._held: dict[str, socket.socket] = {}
        self._lock = threading.Lock()

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def held_addresses(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._held)

    def next_address(self) -> str:
        """Advance the counter and return the next candidate address."""

        with self._lock:
            return self._advance()

    def allocate(self) -> str:
        """Return a fresh address with the hold port bound on it."""

        while True:
            with self._lock:
                address = self._advance()
                if self._hold_port is None:
                    return address
                sock = self._bind_hold(address)
                if sock is None:
                    continue
                self._held[address] = sock
            logger.debug(
                "allocated loopback address",
                extra={"data": {"address": address, "hold_port": self._hold_port}},
            )
            return address

    def close(self) -> None:
        """Release every held socket. Released addresses stay retired."""

        with self._lock:
            held = list(self._held.values())
            self._held.clear()
        for sock in held:
            sock.close()

    def _advance(self) -> str:
        if not self._exhausted:
            octet = 3
            while octet >= self._first_mutable_octet:
                self._octets[octet] += 1
                if self._octets[octet] < OCTET_LIMIT:
                    if self._octets[3] == 0:
                        # .0 after a carry; the host octet restarts at 1
                        octet = 3
                        continue
                    return ".".join(str(part) for part in self._octets)
                self._octets[octet] = 0
                octet -= 1
        self._exhausted = True
        raise AddressSpaceExhaustedError("out of loopback addresses")

    def _bind_hold(self, address: str) -> socket.socket | None:
        sock = self._socket_factory()
        try:
            sock.bind((address, self._hold_port))
            sock.listen()
        except OSError as exc:
            sock.close()
            if exc.errno == errno.EADDRINUSE:
                logger.debug(
                    "address hold port already in use; skipping",
                    extra={"data": {"address": address, "hold_port": self._hold_port}},
                )
                return None
            raise
        return sock


def _default_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_STREAM)


__all__ = ["AddressAllocator", "DEFAULT_BASE", "DEFAULT_HOLD_PORT"]
