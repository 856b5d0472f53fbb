"""Waiting for services and other resources to reach a wanted state."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Any, Callable

log = logging.getLogger(__name__)

AIVEN_TARGET_STATE = "RUNNING"
AIVEN_PENDING_STATE = "REBUILDING"
AIVEN_REBALANCING_STATE = "REBALANCING"
AIVEN_SERVICES_STARTING_STATE = "WAITING_FOR_SERVICES"

_BACKUP_SERVICE_TYPES = frozenset({"pg", "elasticsearch", "redis", "influxdb"})
_MAX_POLL_INTERVAL = 10.0
_FIRST_POLL_INTERVAL = 0.1


class WaitTimeoutError(TimeoutError):
    """Raised when the wanted state is not reached in time."""

    def __init__(self, last_state, expected, timeout):
        super().__init__(
            f"timeout while waiting for state to become {', '.join(expected)!r} "
            f"(last state: {last_state!r}, timeout: {timeout}s)"
        )
        self.last_state = last_state
        self.expected = list(expected)
        self.timeout = timeout


class UnexpectedStateError(RuntimeError):
    """Raised when a refresh reports a state that is neither pending nor a target."""

    def __init__(self, state, expected, message=None):
        super().__init__(
            message or f"unexpected state {state!r}, wanted target {', '.join(expected)!r}"
        )
        self.state = state
        self.expected = list(expected)


@dataclass
class StateChangeConf:
    """Poll a refresh function until it reports one of the target states.

    The refresh function returns ``(result, state)``; a result of None means
    the object was not found.
    """

    pending: list[str]
    target: list[str]
    refresh: Callable[[], tuple[Any, str]]
    timeout: float
    delay: float = 0.0
    min_timeout: float = 0.0
    poll_interval: float = 0.0
    not_found_checks: int = 20
    continuous_target_occurence: int = 1
    sleep: Callable[[float], Any] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def wait(self):
        """Poll until a target state is seen often enough; return the last result."""
        deadline = self.clock() + self.timeout
        if self.delay > 0:
            self.sleep(self.delay)

        interval = _FIRST_POLL_INTERVAL
        target_hits = 0
        not_found = 0
        last_state = ""
        needed = max(self.continuous_target_occurence, 1)

        while True:
            if self.clock() >= deadline:
                raise WaitTimeoutError(last_state, self.target, self.timeout)

            result, state = self.refresh()
            if result is None:
                target_hits = 0
                not_found += 1
                if not_found > self.not_found_checks:
                    raise UnexpectedStateError(
                        "",
                        self.target,
                        f"couldn't find resource ({not_found - 1} retries)",
                    )
            else:
                not_found = 0
                last_state = state
                if state in self.target:
                    target_hits += 1
                    if target_hits >= needed:
                        return result
                elif state in self.pending:
                    target_hits = 0
                else:
                    raise UnexpectedStateError(state, self.target)

            if target_hits == 0:
                interval *= 2
            if self.poll_interval > 0:
                interval = self.poll_interval
            elif interval < self.min_timeout:
                interval = self.min_timeout
            elif interval > _MAX_POLL_INTERVAL:
                interval = _MAX_POLL_INTERVAL
            self.sleep(interval)


@dataclass
class ServiceComponent:
    """A network endpoint of a service."""

    component: str = ""
    host: str = ""
    port: int = 0
    route: str = ""
    usage: str = ""


@dataclass
class ServiceIntegration:
    """An integration attached to a service."""

    integration_type: str = ""
    source_service: str | None = None
    destination_service: str | None = None


@dataclass
class Service:
    """The parts of a service that readiness checks look at."""

    name: str
    type: str
    state: str = ""
    user_config: dict[str, Any] = field(default_factory=dict)
    components: list[ServiceComponent] = field(default_factory=list)
    integrations: list[ServiceIntegration] = field(default_factory=list)
    backups: list[Any] = field(default_factory=list)


def grafana_ready(service):
    """Tell whether a Grafana service answers on its public address."""
    if service.type != "grafana":
        return True

    if "ip_filter" in service.user_config:
        ip_filters = list(service.user_config["ip_filter"] or [])
        if len(ip_filters) > 1 or (len(ip_filters) == 1 and ip_filters[0] != "0.0.0.0/0"):
            log.debug(
                "grafana service has %r ip filters, and availability checks will be skipped",
                ip_filters,
            )
            return True

    address = None
    for component in service.components:
        if component.route == "public" and component.usage == "primary":
            address = (component.host, component.port)

    if address is None:
        return True

    try:
        with socket.create_connection(address, timeout=1.0):
            pass
    except OSError:
        log.debug("public grafana is not yet reachable")
        return False
    log.debug("public grafana is reachable")
    return True


def backups_ready(service):
    """Tell whether a service that keeps backups has at least one."""
    if service.type not in _BACKUP_SERVICE_TYPES:
        return True
    if any(
        integration.integration_type == "read_replica"
        and integration.destination_service == service.name
        for integration in service.integrations
    ):
        return True
    return len(service.backups) > 0


@dataclass
class ServiceChangeWaiter:
    """Refreshes a service's state while it is being provisioned or updated.

    ``client.services.get(project, service_name)`` must return a Service.
    """

    client: Any
    operation: str
    project: str
    service_name: str

    def refresh(self):
        """Fetch the service and return it with the state to wait on."""
        service = self.client.services.get(self.project, self.service_name)
        state = service.state
        if self.operation == "update":
            # An already running service can be managed while it rebuilds.
            state = AIVEN_TARGET_STATE
        if state == AIVEN_TARGET_STATE and not backups_ready(service):
            state = AIVEN_SERVICES_STARTING_STATE
        if state == AIVEN_TARGET_STATE and not grafana_ready(service):
            state = AIVEN_SERVICES_STARTING_STATE
        return service, state

    def conf(self, timeout):
        """Build the wait configuration; ``timeout`` is in seconds."""
        log.debug("Service waiter timeout %.0f minutes", timeout / 60)
        return StateChangeConf(
            pending=[AIVEN_PENDING_STATE, AIVEN_REBALANCING_STATE, AIVEN_SERVICES_STARTING_STATE],
            target=[AIVEN_TARGET_STATE],
            refresh=self.refresh,
            delay=10.0,
            timeout=timeout,
            min_timeout=2.0,
            continuous_target_occurence=3,
        )