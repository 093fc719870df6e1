"""
Health probe for a cassandra-driver session.

Reports the known hosts with their up/down state and the number of open
connections. The session is considered DOWN when no connection is open.
"""

from dataclasses import dataclass, field
from typing import Any

from cassmigrate.config.logging_config import get_logger

log = get_logger(__name__)

STATUS_UP = "UP"
STATUS_DOWN = "DOWN"


@dataclass
class HealthReport:
    status: str
    open_connections: int
    servers: dict[str, str] = field(default_factory=dict)

    @property
    def is_up(self) -> bool:
        return self.status == STATUS_UP

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "servers": dict(self.servers),
            "openConnections": self.open_connections,
        }


def _host_state(host: Any) -> str:
    # is_up is None until the driver has an opinion about the host
    return STATUS_UP if getattr(host, "is_up", False) else STATUS_DOWN


def count_open_connections(session: Any) -> int:
    total = 0
    for state in session.get_pool_state().values():
        if not state.get("shutdown", False):
            total += int(state.get("open_count", 0))
    return total


def host_states(session: Any) -> dict[str, str]:
    """Map each host address known to the cluster to UP or DOWN.

    Several contact points may resolve to the same address; the last state
    seen for an address wins.
    """
    states: dict[str, str] = {}
    for host in session.cluster.metadata.all_hosts():
        states[str(host.address)] = _host_state(host)
    return states


def check_health(session: Any) -> HealthReport:
    """Build a health report for ``session``."""
    open_connections = count_open_connections(session)
    report = HealthReport(
        status=STATUS_DOWN if open_connections == 0 else STATUS_UP,
        open_connections=open_connections,
        servers=host_states(session),
    )
    log.debug(f"Cassandra health: {report.status} ({open_connections} open connections)")
    return report
