from types import SimpleNamespace

import pytest

from aivenkit.cache import NotFoundError
from aivenkit.service_change import UnexpectedStateError
from aivenkit.vpc_peering import (
    Diagnostic,
    PeeringConnection,
    PeeringId,
    PeeringRequest,
    Severity,
    VPCPeeringConnectionResource,
    build_peering_resource_id,
    convert_state_info_to_map,
    creation_diagnostics,
    parse_peering_vpc_id,
    peering_attributes,
    state_info_to_string,
    validate_import_id,
)


class FakePeeringApi:
    def __init__(self, states, **connection_fields):
        self.states = list(states)
        self.fields = connection_fields
        self.calls = []
        self.missing = False

    def _next(self):
        if self.missing:
            raise NotFoundError("not found")
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        fields = {"peer_cloud_account": "123456", "peer_vpc": "vpc-abc"}
        fields.update(self.fields)
        return PeeringConnection(state=state, **fields)

    def create(self, project, vpc_id, payload):
        self.calls.append(("create", project, vpc_id, payload))

    def get_vpc_peering(self, project, vpc_id, account, peer_vpc, region):
        self.calls.append(("get", project, vpc_id, account, peer_vpc, region))
        return self._next()

    def get_vpc_peering_with_resource_group(self, project, vpc_id, account, peer_vpc, region, group):
        self.calls.append(("get_rg", project, vpc_id, account, peer_vpc, region, group))
        return self._next()

    def delete_vpc_peering(self, project, vpc_id, account, peer_vpc, region):
        self.calls.append(("delete", project, vpc_id, account, peer_vpc, region))

    def delete_vpc_peering_with_resource_group(self, project, vpc_id, account, peer_vpc, group, region):
        self.calls.append(("delete_rg", project, vpc_id, account, peer_vpc, group, region))


def make_resource(states, cloud_name="aws-eu-west-1", **fields):
    api = FakePeeringApi(states, **fields)
    vpcs = SimpleNamespace(get=lambda project, vpc_id: SimpleNamespace(cloud_name=cloud_name))
    client = SimpleNamespace(vpc_peering_connections=api, vpcs=vpcs)
    return VPCPeeringConnectionResource(client, sleep=lambda seconds: None), api


def call_names(api):
    return [call[0] for call in api.calls]


def test_convert_state_info_to_map_basic():
    state_info = {
        "message": "xxx",
        "type": "xxx",
        "warnings": [
            {"field_a": "xxx", "message": "xxx", "type": "overlapping-peer-vpc-ip-ranges"},
        ],
    }
    assert convert_state_info_to_map(state_info) == {
        "message": "xxx",
        "type": "xxx",
        "warnings": "[map[field_a:xxx message:xxx type:overlapping-peer-vpc-ip-ranges]]",
    }


@pytest.mark.parametrize("state_info", [None, {}])
def test_convert_state_info_to_map_empty(state_info):
    assert convert_state_info_to_map(state_info) is None


def test_convert_state_info_to_map_scalars():
    assert convert_state_info_to_map({"count": 3, "ok": True, "ratio": 2.0, "none": None}) == {
        "count": "3",
        "ok": "true",
        "ratio": "2",
        "none": "<nil>",
    }


def test_state_info_to_string_empty():
    assert state_info_to_string({}) == ""
    assert state_info_to_string(None) == ""


def test_state_info_to_string_message_first():
    info = {"type": "x", "message": "hello"}
    assert state_info_to_string(info) == 'hello\n "type":"x"'
    assert info == {"type": "x", "message": "hello"}


def test_state_info_to_string_non_string_value():
    assert state_info_to_string({"message": "m", "n": [1, 2]}) == 'm\n "n":`[1 2]`'


def test_parse_peering_vpc_id_without_region():
    assert parse_peering_vpc_id("proj/vpc1/123456/vpc-abc") == PeeringId(
        "proj", "vpc1", "123456", "vpc-abc", None
    )


def test_parse_peering_vpc_id_with_region():
    parsed = parse_peering_vpc_id("proj/vpc1/123456/vpc-abc/eu-west-1")
    assert parsed.peer_region == "eu-west-1"
    assert parsed.peer_vpc == "vpc-abc"


def test_parse_peering_vpc_id_too_short():
    with pytest.raises(ValueError):
        parse_peering_vpc_id("proj/vpc1")


def test_build_peering_resource_id():
    assert build_peering_resource_id("p", "v", "a", "pv", None) == "p/v/a/pv"
    assert build_peering_resource_id("p", "v", "a", "pv", "r") == "p/v/a/pv/r"


def test_build_and_parse_round_trip():
    resource_id = build_peering_resource_id("p", "v", "a", "pv", "azure-westeurope")
    assert parse_peering_vpc_id(resource_id) == PeeringId("p", "v", "a", "pv", "azure-westeurope")


def test_validate_import_id():
    assert validate_import_id("p/v/a/pv").project == "p"
    with pytest.raises(ValueError, match="invalid identifier"):
        validate_import_id("p/v/a/pv/r")


def test_creation_diagnostics_active():
    assert creation_diagnostics(PeeringConnection("a", "pv", "ACTIVE")) == []


def test_creation_diagnostics_pending_peer_is_warning():
    connection = PeeringConnection("a", "pv", "PENDING_PEER", state_info={"message": "accept it"})
    diagnostics = creation_diagnostics(connection)
    assert len(diagnostics) == 1
    assert diagnostics[0].severity is Severity.WARNING
    assert diagnostics[0].summary.endswith("accept it")


@pytest.mark.parametrize(
    "state", ["DELETED", "DELETED_BY_PEER", "REJECTED_BY_PEER", "INVALID_SPECIFICATION"]
)
def test_creation_diagnostics_errors(state):
    diagnostics = creation_diagnostics(PeeringConnection("a", "pv", state, state_info={}))
    assert [d.severity for d in diagnostics] == [Severity.ERROR]


def test_creation_diagnostics_unknown_state():
    with pytest.raises(UnexpectedStateError):
        creation_diagnostics(PeeringConnection("a", "pv", "WEIRD"))


def test_peering_attributes():
    connection = PeeringConnection(
        "123456",
        "vpc-abc",
        "ACTIVE",
        peer_region="eu-west-1",
        state_info={"aws_vpc_peering_connection_id": "pcx-1", "message": "ok"},
        user_peer_network_cidrs=["10.0.0.0/24"],
    )
    assert peering_attributes(connection, "proj", "vpc1") == {
        "vpc_id": "proj/vpc1",
        "peer_cloud_account": "123456",
        "peer_vpc": "vpc-abc",
        "peer_region": "eu-west-1",
        "state": "ACTIVE",
        "peering_connection_id": "pcx-1",
        "state_info": {"aws_vpc_peering_connection_id": "pcx-1", "message": "ok"},
        "user_peer_network_cidrs": ["10.0.0.0/24"],
    }


def test_peering_attributes_minimal():
    attributes = peering_attributes(PeeringConnection("a", "pv", "ACTIVE"), "p", "v")
    assert "peer_region" not in attributes
    assert "peering_connection_id" not in attributes
    assert attributes["state_info"] is None


def test_is_azure_from_region():
    resource, _ = make_resource(["ACTIVE"])
    assert resource.is_azure("p/v/a/pv/azure-westeurope") is True
    assert resource.is_azure("p/v/a/pv/eu-west-1") is False


def test_is_azure_from_project_vpc_cloud():
    azure, _ = make_resource(["ACTIVE"], cloud_name="azure-westeurope")
    aws, _ = make_resource(["ACTIVE"], cloud_name="aws-eu-west-1")
    assert azure.is_azure("p/v/a/pv") is True
    assert aws.is_azure("p/v/a/pv") is False


def test_create_active():
    resource, api = make_resource(["APPROVED", "ACTIVE"])
    request = PeeringRequest(vpc_id="proj/vpc1", peer_cloud_account="123456", peer_vpc="vpc-abc")
    resource_id, attributes, warnings = resource.create(request)
    assert resource_id == "proj/vpc1/123456/vpc-abc"
    assert attributes["state"] == "ACTIVE"
    assert warnings == []
    assert api.calls[0][3]["peer_region"] is None


def test_create_with_region_includes_it_in_id():
    resource, _ = make_resource(["ACTIVE"], peer_region="eu-west-1")
    request = PeeringRequest(
        vpc_id="proj/vpc1", peer_cloud_account="123456", peer_vpc="vpc-abc", peer_region="eu-west-1"
    )
    resource_id, attributes, _ = resource.create(request)
    assert resource_id == "proj/vpc1/123456/vpc-abc/eu-west-1"
    assert attributes["peer_region"] == "eu-west-1"


def test_create_pending_peer_returns_warning():
    resource, _ = make_resource(["PENDING_PEER"])
    request = PeeringRequest(vpc_id="proj/vpc1", peer_cloud_account="123456", peer_vpc="vpc-abc")
    _, attributes, warnings = resource.create(request)
    assert attributes["state"] == "PENDING_PEER"
    assert [w.severity for w in warnings] == [Severity.WARNING]
    assert isinstance(warnings[0], Diagnostic)


def test_create_rejected_deletes_and_raises():
    resource, api = make_resource(["REJECTED_BY_PEER", "DELETED"])
    request = PeeringRequest(vpc_id="proj/vpc1", peer_cloud_account="123456", peer_vpc="vpc-abc")
    with pytest.raises(UnexpectedStateError, match="rejected"):
        resource.create(request)
    assert "delete" in call_names(api)


def test_create_bad_vpc_id():
    resource, api = make_resource(["ACTIVE"])
    with pytest.raises(ValueError, match="incorrect VPC ID"):
        resource.create(PeeringRequest(vpc_id="novpc", peer_cloud_account="a", peer_vpc="b"))
    assert api.calls == []


def test_read_not_found_returns_none():
    resource, api = make_resource(["ACTIVE"])
    api.missing = True
    assert resource.read("p/v/a/pv/eu-west-1") is None


def test_read_azure_requires_resource_group():
    resource, _ = make_resource(["ACTIVE"])
    with pytest.raises(ValueError, match="peer_resource_group"):
        resource.read("p/v/a/pv/azure-westeurope")


def test_read_azure_includes_azure_fields():
    resource, api = make_resource(
        ["ACTIVE"],
        peer_azure_app_id="app-id",
        peer_azure_tenant_id="tenant-id",
        peer_resource_group="group",
    )
    attributes = resource.read("p/v/a/pv/azure-westeurope", "group")
    assert attributes["peer_azure_app_id"] == "app-id"
    assert attributes["peer_azure_tenant_id"] == "tenant-id"
    assert attributes["peer_resource_group"] == "group"
    assert api.calls[-1][0] == "get_rg"


def test_delete_waits_for_deleted():
    resource, api = make_resource(["DELETING", "DELETED"])
    resource.delete("p/v/a/pv/eu-west-1")
    assert call_names(api) == ["delete", "get", "get"]


def test_delete_azure_deletes_with_resource_group():
    resource, api = make_resource(["DELETED"])
    resource.delete("p/v/a/pv/azure-westeurope", "group")
    assert call_names(api) == ["delete_rg", "delete", "get_rg"]
    assert api.calls[0][5] == "group"


def test_delete_azure_without_resource_group():
    resource, api = make_resource(["DELETED"])
    with pytest.raises(ValueError, match="peer_resource_group"):
        resource.delete("p/v/a/pv/azure-westeurope")
    assert api.calls == []