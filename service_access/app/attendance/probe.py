"""
Local network address discovery through an ICE candidate exchange.
"""

import asyncio
import functools
import ipaddress
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Tuple

import aioice
import aioice.ice

from shared.logging import get_logger
from shared.metrics import MetricsCollector


PRIVATE_LAN_NETWORKS = (
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
)


@dataclass(frozen=True)
class NetworkIdentitySample:
    """Address detected for one attendance attempt. Never persisted here."""
    ip_address: Optional[str]
    detected_at: datetime
    confirmed: bool = False
    check_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def found(self) -> bool:
        return self.ip_address is not None


def pick_best_address(candidates: Iterable[str]) -> Optional[str]:
    """Prefer a private LAN IPv4 address, else the first usable IPv4 one."""
    usable: List[ipaddress.IPv4Address] = []
    for host in candidates:
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            # mDNS-obfuscated hosts such as "<uuid>.local"
            continue
        if address.version != 4 or address.is_loopback or address.is_link_local or address.is_unspecified:
            continue
        if address not in usable:
            usable.append(address)

    for address in usable:
        if any(address in network for network in PRIVATE_LAN_NETWORKS):
            return str(address)
    return str(usable[0]) if usable else None


class NetworkIdentityProbe:
    """Discovers the terminal's local IP from gathered ICE candidates.

    Host addresses are read from the interfaces first, without STUN, so
    they are known before any network round trip. A single best-effort
    gathering round against the STUN server then runs within ``timeout``
    seconds; when the bound elapses the host addresses alone are used,
    and the sample is "not found" if there are none.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        stun_server: Optional[Tuple[str, int]] = ("stun.l.google.com", 19302),
        connection_factory: Optional[Callable[[], Any]] = None,
        host_addresses: Optional[Callable[[], List[str]]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.timeout = timeout
        self.stun_server = stun_server
        self.metrics = metrics
        self.logger = get_logger("access.attendance.probe")
        self._connection_factory = connection_factory or functools.partial(
            aioice.Connection,
            ice_controlling=True,
            stun_server=stun_server,
            use_ipv6=False,
        )
        self._host_addresses = host_addresses or functools.partial(
            aioice.ice.get_host_addresses,
            use_ipv4=True,
            use_ipv6=False,
        )

    async def detect(self, check_id: Optional[str] = None) -> NetworkIdentitySample:
        result = "found"
        try:
            hosts = list(self._host_addresses())
        except OSError as e:
            hosts = []
            self.logger.warning("Host address lookup failed", error=str(e))

        connection = self._connection_factory()
        try:
            try:
                await asyncio.wait_for(connection.gather_candidates(), timeout=self.timeout)
                hosts.extend(candidate.host for candidate in connection.local_candidates)
            except asyncio.TimeoutError:
                result = "timeout"
                self.logger.info(
                    "Candidate gathering timed out",
                    timeout_seconds=self.timeout,
                    host_addresses=len(hosts)
                )
            except Exception as e:
                result = "error"
                self.logger.warning("Candidate gathering failed", error=str(e))
        finally:
            await connection.close()

        ip_address = pick_best_address(hosts)
        if ip_address is None:
            result = "not_found"

        if self.metrics:
            self.metrics.increment_counter("network_probes_total", result=result)

        extra = {"check_id": check_id} if check_id is not None else {}
        return NetworkIdentitySample(ip_address=ip_address, detected_at=datetime.now(timezone.utc), **extra)
