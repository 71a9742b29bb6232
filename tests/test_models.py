import pytest
from pydantic import ValidationError

from netdiagram.models import (
    Connection,
    Device,
    DeviceConfig,
    Interface,
    NetworkDiagram,
    RouterConfig,
    SwitchConfig,
    config_for_type,
)


def test_interface_serializes_camel_case():
    intf = Interface(id="intf-1", name="gi0/0", ip_address="10.0.0.1", speed=1000)
    data = intf.model_dump(by_alias=True, exclude_none=True)
    assert data["ipAddress"] == "10.0.0.1"
    assert data["speed"] == "1000"
    assert data["status"] == "down"


def test_interface_accepts_camel_and_snake_input():
    a = Interface.model_validate({"id": "i", "ipAddress": "10.0.0.1"})
    b = Interface.model_validate({"id": "i", "ip_address": "10.0.0.1"})
    assert a == b


def test_interface_rejects_vlan_out_of_range():
    with pytest.raises(ValidationError):
        Interface(id="i", vlans=[0])
    with pytest.raises(ValidationError):
        Interface(id="i", vlans=[4095])
    assert Interface(id="i", vlans=[1, 4094]).vlans == [1, 4094]


def test_legacy_connected_to_string_becomes_reference():
    intf = Interface.model_validate({"id": "i", "connectedTo": "device-9"})
    assert intf.connected_to.device_id == "device-9"
    assert intf.connected_to.interface_id is None


def test_management_ip_must_be_ipv4():
    with pytest.raises(ValidationError):
        DeviceConfig(management_ip="not-an-ip")
    assert DeviceConfig(management_ip="").management_ip is None


def test_device_config_keeps_unknown_keys():
    config = DeviceConfig.model_validate({"hostname": "r1", "snmpCommunity": "public"})
    assert config.model_dump(by_alias=True, exclude_none=True) == {
        "hostname": "r1",
        "snmpCommunity": "public",
    }


def test_device_config_is_narrowed_to_its_type():
    device = Device.model_validate({
        "id": "device-1",
        "type": "router",
        "config": {"hostname": "edge", "asn": 65000},
    })
    assert isinstance(device.config, RouterConfig)
    assert device.config.asn == 65000
    assert device.model_dump(by_alias=True)["config"]["asn"] == 65000


def test_config_for_type_converts_between_types():
    router = RouterConfig(hostname="core", routing_protocol="ospf")
    switch = config_for_type("switch", router)
    assert isinstance(switch, SwitchConfig)
    assert switch.hostname == "core"
    assert config_for_type("router", router) is router


def test_connection_legacy_field_names():
    conn = Connection.model_validate({
        "id": "conn-1",
        "from": "device-1",
        "to": "device-2",
        "sourceInterface": "gi0/0",
        "targetInterface": "eth0",
    })
    assert conn.source == "device-1"
    assert conn.target == "device-2"
    assert conn.source_port == "gi0/0"
    assert conn.target_port == "eth0"
    assert conn.source_interface_id is None


def test_empty_interface_id_means_unselected():
    conn = Connection(id="c", source="a", target="b", source_interface_id="")
    assert conn.source_interface_id is None


def test_diagram_json_round_trip_keeps_shape():
    diagram = NetworkDiagram(
        id="diagram-1",
        devices=[Device(id="device-1", type="server", name="web")],
    )
    data = diagram.to_json_dict()
    assert set(data) >= {"id", "name", "devices", "connections", "layer", "createdAt", "updatedAt"}
    assert data["devices"][0]["type"] == "server"
    assert NetworkDiagram.from_json_dict(data) == diagram
