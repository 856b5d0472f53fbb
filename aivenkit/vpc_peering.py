"""VPC peering connections: identifiers, state handling and lifecycle."""

from __future__ import annotations

import enum
import json
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from aivenkit.cache import NotFoundError
from aivenkit.service_change import StateChangeConf, UnexpectedStateError

DEFAULT_TIMEOUT = 120.0

_CREATE_PENDING = ["APPROVED"]
_CREATE_TARGET = [
    "ACTIVE",
    "REJECTED_BY_PEER",
    "PENDING_PEER",
    "INVALID_SPECIFICATION",
    "DELETING",
    "DELETED",
    "DELETED_BY_PEER",
]
_DELETE_PENDING = [
    "ACTIVE",
    "APPROVED",
    "APPROVED_PEER_REQUESTED",
    "DELETING",
    "INVALID_SPECIFICATION",
    "PENDING_PEER",
    "REJECTED_BY_PEER",
    "DELETED_BY_PEER",
]
_DELETE_TARGET = ["DELETED"]


class Severity(enum.Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    """A message about the outcome of an operation."""

    severity: Severity
    summary: str
    detail: str = ""


@dataclass
class PeeringId:
    """The parts of a peering connection identifier."""

    project: str
    vpc_id: str
    peer_cloud_account: str
    peer_vpc: str
    peer_region: str | None = None


@dataclass
class PeeringConnection:
    """A peering connection as reported by the API."""

    peer_cloud_account: str
    peer_vpc: str
    state: str
    peer_region: str | None = None
    state_info: dict[str, Any] | None = None
    user_peer_network_cidrs: list[str] = field(default_factory=list)
    peer_azure_app_id: str = ""
    peer_azure_tenant_id: str = ""
    peer_resource_group: str = ""


@dataclass
class PeeringRequest:
    """What the user asks for; ``vpc_id`` has the form ``<project>/<vpc_id>``."""

    vpc_id: str
    peer_cloud_account: str
    peer_vpc: str
    peer_region: str = ""
    user_peer_network_cidrs: list[str] = field(default_factory=list)
    peer_azure_app_id: str = ""
    peer_azure_tenant_id: str = ""
    peer_resource_group: str = ""


def _format_float(value):
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _format_value(value):
    """Render a decoded JSON value the way the API's state info is shown."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda item: str(item[0]))
        return "map[" + " ".join(f"{_format_value(k)}:{_format_value(v)}" for k, v in items) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    return str(value)


def _quote(text):
    return json.dumps(text, ensure_ascii=False)


def state_info_to_string(state_info):
    """Render state info as text, the message first."""
    if not state_info:
        return ""
    text = ""
    if "message" in state_info:
        text = _format_value(state_info["message"])
    for key, value in state_info.items():
        if key == "message":
            continue
        if isinstance(value, str):
            text += f"\n {_quote(key)}:{_quote(value)}"
        else:
            text += f"\n {_quote(key)}:`{_format_value(value)}`"
    return text


def convert_state_info_to_map(state_info):
    """Turn state info into a mapping of strings, or None when empty."""
    if not state_info:
        return None
    return {key: _format_value(value) for key, value in state_info.items()}


def parse_peering_vpc_id(resource_id):
    """Split ``project/vpc/account/peer_vpc[/region]`` into its parts."""
    parts = resource_id.split("/")
    if len(parts) < 4:
        raise ValueError(
            f"invalid VPC peering connection id {resource_id!r}, expected "
            "<project_name>/<vpc_id>/<peer_cloud_account>/<peer_vpc>[/<peer_region>]"
        )
    region = parts[4] if len(parts) > 4 else None
    return PeeringId(parts[0], parts[1], parts[2], parts[3], region)


def build_peering_resource_id(project, vpc_id, peer_cloud_account, peer_vpc, peer_region):
    """Join the parts of a peering connection identifier."""
    parts = [project, vpc_id, peer_cloud_account, peer_vpc]
    if peer_region:
        parts.append(peer_region)
    return "/".join(parts)


def validate_import_id(resource_id):
    """Check an identifier given for import and return its parts."""
    if len(resource_id.split("/")) != 4:
        raise ValueError(
            f"invalid identifier {resource_id}, expected "
            "<project_name>/<vpc_id>/<peer_cloud_account>/<peer_vpc>"
        )
    return parse_peering_vpc_id(resource_id)


def creation_diagnostics(connection):
    """Describe the state a new connection settled in."""
    state = connection.state
    info = connection.state_info
    if state == "ACTIVE":
        return []
    if state == "PENDING_PEER":
        return [
            Diagnostic(
                Severity.WARNING,
                "Aiven platform has created a connection to the specified peer successfully in "
                "the cloud, but the connection is not active until the user completes the setup "
                "in their cloud account. The steps needed in the user cloud account depend on "
                "the used cloud provider. Find more in the state info: "
                + state_info_to_string(info),
            )
        ]
    if state == "DELETED":
        summary = (
            "A user has deleted the peering connection through the Aiven Terraform provider, "
            "or Aiven Web Console or directly via Aiven API. There are no transitions from "
            "this state"
        )
    elif state == "DELETED_BY_PEER":
        summary = (
            "A user deleted the peering cloud resource in their account. "
            "There are no transitions from this state"
        )
    elif state == "REJECTED_BY_PEER":
        summary = (
            "AWS VPC peering connection request was rejected, state info: "
            + state_info_to_string(info)
        )
    elif state == "INVALID_SPECIFICATION":
        summary = (
            "VPC peering connection cannot be created, more in the state info: "
            + state_info_to_string(info)
        )
    else:
        raise UnexpectedStateError(
            state, ["ACTIVE"], f"Unknown VPC peering connection state: {state}"
        )
    return [Diagnostic(Severity.ERROR, summary)]


def peering_attributes(connection, project, vpc_id):
    """Attribute values of a connection as stored in resource state."""
    attributes = {
        "vpc_id": f"{project}/{vpc_id}",
        "peer_cloud_account": connection.peer_cloud_account,
        "peer_vpc": connection.peer_vpc,
        "state": connection.state,
    }
    if connection.peer_region is not None:
        attributes["peer_region"] = connection.peer_region
    if connection.state_info is not None and "aws_vpc_peering_connection_id" in connection.state_info:
        attributes["peering_connection_id"] = _format_value(
            connection.state_info["aws_vpc_peering_connection_id"]
        )
    attributes["state_info"] = convert_state_info_to_map(connection.state_info)
    if connection.user_peer_network_cidrs:
        attributes["user_peer_network_cidrs"] = list(connection.user_peer_network_cidrs)
    return attributes


def _azure_attributes(connection):
    return {
        "peer_azure_app_id": connection.peer_azure_app_id,
        "peer_azure_tenant_id": connection.peer_azure_tenant_id,
        "peer_resource_group": connection.peer_resource_group,
    }


def _split_vpc_id(vpc_id):
    project, _, vpc = vpc_id.partition("/")
    if not project or not vpc:
        raise ValueError("incorrect VPC ID, expected structure <PROJECT_NAME>/<VPC_ID>")
    return project, vpc


class VPCPeeringConnectionResource:
    """Creates, reads and deletes VPC peering connections through a client.

    The client offers ``vpcs.get(project, vpc_id)`` returning an object with
    ``cloud_name``, and ``vpc_peering_connections`` with ``create``,
    ``get_vpc_peering``, ``get_vpc_peering_with_resource_group``,
    ``delete_vpc_peering`` and ``delete_vpc_peering_with_resource_group``.
    A missing object is reported by raising NotFoundError.
    """

    def __init__(self, client, sleep: Callable[[float], Any] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self._sleep = sleep
        self._clock = clock

    def _conf(self, pending, target, refresh, timeout):
        return StateChangeConf(
            pending=pending,
            target=target,
            refresh=refresh,
            timeout=timeout,
            delay=10.0,
            min_timeout=2.0,
            sleep=self._sleep,
            clock=self._clock,
        )

    def is_azure(self, resource_id):
        """Tell whether the peered network is in the Azure cloud."""
        peering = parse_peering_vpc_id(resource_id)
        if peering.peer_region is None:
            # Without a region the peer shares the project VPC's cloud.
            vpc = self.client.vpcs.get(peering.project, peering.vpc_id)
            return "azure" in vpc.cloud_name
        return "azure" in peering.peer_region

    def create(self, request, timeout=DEFAULT_TIMEOUT):
        """Create a connection and wait for it to settle.

        Returns ``(resource_id, attributes, warnings)``. When the connection
        settles in a failed state it is deleted and UnexpectedStateError is
        raised.
        """
        project, vpc_id = _split_vpc_id(request.vpc_id)
        region = request.peer_region or None
        api = self.client.vpc_peering_connections
        api.create(
            project,
            vpc_id,
            {
                "peer_cloud_account": request.peer_cloud_account,
                "peer_vpc": request.peer_vpc,
                "peer_region": region,
                "user_peer_network_cidrs": list(request.user_peer_network_cidrs),
                "peer_azure_app_id": request.peer_azure_app_id,
                "peer_azure_tenant_id": request.peer_azure_tenant_id,
                "peer_resource_group": request.peer_resource_group,
            },
        )

        def refresh():
            connection = api.get_vpc_peering(
                project, vpc_id, request.peer_cloud_account, request.peer_vpc, region
            )
            return connection, connection.state

        connection = self._conf(_CREATE_PENDING, _CREATE_TARGET, refresh, timeout).wait()
        diagnostics = creation_diagnostics(connection)

        resource_id = build_peering_resource_id(
            project,
            vpc_id,
            connection.peer_cloud_account,
            connection.peer_vpc,
            (connection.peer_region or region) if region else None,
        )
        resource_group = request.peer_resource_group or None

        errors = [d for d in diagnostics if d.severity is Severity.ERROR]
        if errors:
            self.delete(resource_id, resource_group, timeout)
            raise UnexpectedStateError(
                connection.state, ["ACTIVE"], "; ".join(d.summary for d in errors)
            )
        return resource_id, self.read(resource_id, resource_group), diagnostics

    def read(self, resource_id, peer_resource_group=None):
        """Return the connection's attributes, or None when it no longer exists."""
        peering = parse_peering_vpc_id(resource_id)
        api = self.client.vpc_peering_connections
        if self.is_azure(resource_id):
            if not peer_resource_group:
                raise ValueError(
                    "cannot get an Azure VPC peering connection without `peer_resource_group`"
                )
            try:
                connection = api.get_vpc_peering_with_resource_group(
                    peering.project,
                    peering.vpc_id,
                    peering.peer_cloud_account,
                    peering.peer_vpc,
                    peering.peer_region,
                    peer_resource_group,
                )
            except NotFoundError:
                return None
            attributes = peering_attributes(connection, peering.project, peering.vpc_id)
            attributes.update(_azure_attributes(connection))
            return attributes

        try:
            connection = api.get_vpc_peering(
                peering.project,
                peering.vpc_id,
                peering.peer_cloud_account,
                peering.peer_vpc,
                peering.peer_region,
            )
        except NotFoundError:
            return None
        return peering_attributes(connection, peering.project, peering.vpc_id)

    def delete(self, resource_id, peer_resource_group=None, timeout=DEFAULT_TIMEOUT):
        """Delete a connection and wait until it is gone."""
        peering = parse_peering_vpc_id(resource_id)
        api = self.client.vpc_peering_connections
        azure = self.is_azure(resource_id)

        if azure:
            if not peer_resource_group:
                raise ValueError(
                    "cannot delete an Azure VPC peering connection without `peer_resource_group`"
                )
            try:
                api.delete_vpc_peering_with_resource_group(
                    peering.project,
                    peering.vpc_id,
                    peering.peer_cloud_account,
                    peering.peer_vpc,
                    peer_resource_group,
                    peering.peer_region,
                )
            except NotFoundError:
                pass
        try:
            api.delete_vpc_peering(
                peering.project,
                peering.vpc_id,
                peering.peer_cloud_account,
                peering.peer_vpc,
                peering.peer_region,
            )
        except NotFoundError:
            pass

        def refresh():
            if azure:
                connection = api.get_vpc_peering_with_resource_group(
                    peering.project,
                    peering.vpc_id,
                    peering.peer_cloud_account,
                    peering.peer_vpc,
                    peering.peer_region,
                    peer_resource_group,
                )
            else:
                connection = api.get_vpc_peering(
                    peering.project,
                    peering.vpc_id,
                    peering.peer_cloud_account,
                    peering.peer_vpc,
                    peering.peer_region,
                )
            return connection, connection.state

        try:
            self._conf(_DELETE_PENDING, _DELETE_TARGET, refresh, timeout).wait()
        except NotFoundError:
            pass