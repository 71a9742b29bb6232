import logging

from netdiagram.ids import SequentialIdGenerator
from netdiagram.migration import (
    create_device_interfaces,
    migrate_connection_to_interface_ids,
    migrate_device_to_interfaces,
    migrate_diagram,
)
from netdiagram.models import Device, DeviceConfig


def names(device):
    return [i.name for i in device.interfaces]


def test_new_router_gets_primary_and_extra_ports():
    interfaces = create_device_interfaces("router", DeviceConfig(), SequentialIdGenerator())
    assert [i.name for i in interfaces] == ["gi0/0", "gi0/1", "gi0/2"]
    assert all(i.status == "down" for i in interfaces)
    assert all(i.mode == "routed" for i in interfaces[1:])
    assert len({i.id for i in interfaces}) == 3


def test_primary_interface_takes_legacy_addressing():
    config = DeviceConfig(ip_address="10.0.0.1", subnet="255.255.255.0")
    primary = create_device_interfaces("server", config)[0]
    assert primary.mode == "routed"
    assert primary.ip_address == "10.0.0.1"
    assert primary.speed == "1000"


def test_legacy_switch_with_vlan():
    device = migrate_device_to_interfaces({
        "id": "sw1",
        "type": "switch",
        "name": "core",
        "config": {"vlan": "20"},
    }, SequentialIdGenerator())

    assert names(device) == ["gi1/0/1", "gi1/0/2", "gi1/0/3", "gi1/0/4"]
    primary = device.interfaces[0]
    assert primary.vlans == [20]
    assert primary.mode == "access"
    assert primary.speed is None
    assert device.config.hostname == "core"


def test_legacy_router_without_addressing_gets_extras_only():
    device = migrate_device_to_interfaces({"id": "r1", "type": "router", "name": "r1"})
    assert names(device) == ["gi0/1", "gi0/2"]


def test_legacy_cloud_always_gets_an_interface():
    device = migrate_device_to_interfaces({"id": "c1", "type": "cloud", "name": "isp"})
    assert names(device) == ["eth0"]


def test_legacy_management_ip_falls_back_to_ip_address():
    device = migrate_device_to_interfaces({
        "id": "r1", "type": "router", "config": {"ipAddress": "192.168.1.1"}
    })
    assert device.config.management_ip == "192.168.1.1"


def test_invalid_legacy_ip_is_dropped_from_management(caplog):
    with caplog.at_level(logging.WARNING, logger="netdiagram.migration"):
        device = migrate_device_to_interfaces({
            "id": "r1", "type": "router", "config": {"ipAddress": "999.1.1.1"}
        })
    assert device.config.management_ip is None
    assert "invalid legacy management IP" in caplog.text


def test_current_shape_passes_through():
    raw = {
        "id": "s1",
        "type": "server",
        "interfaces": [{"id": "eth0", "name": "eth0", "status": "up"}],
    }
    device = migrate_device_to_interfaces(raw)
    assert names(device) == ["eth0"]
    assert device.interfaces[0].status == "up"


def test_nested_config_interfaces_are_moved_out():
    device = migrate_device_to_interfaces({
        "id": "s1",
        "type": "server",
        "config": {"hostname": "web", "interfaces": [{"id": "i1", "name": "eth0"}]},
    })
    assert names(device) == ["eth0"]
    assert device.config.hostname == "web"


def test_device_instances_are_returned_unchanged():
    device = Device(id="d", type="server")
    assert migrate_device_to_interfaces(device) is device


def test_missing_device_id_is_minted():
    device = migrate_device_to_interfaces({"type": "server"}, SequentialIdGenerator())
    assert device.id == "device-1"


def test_connection_resolves_port_names_case_insensitively():
    devices = [
        migrate_device_to_interfaces({"id": "r1", "type": "router", "config": {"ipAddress": "10.0.0.1"}}),
        migrate_device_to_interfaces({"id": "s1", "type": "switch", "config": {"vlan": "10"}}),
    ]
    conn = migrate_connection_to_interface_ids(
        {"id": "c1", "source": "r1", "target": "s1", "sourcePort": "GI0/2", "targetPort": "gi1/0/3"},
        devices,
    )
    assert conn.source_interface_id == devices[0].interfaces[2].id
    assert conn.target_interface_id == devices[1].interfaces[2].id


def test_connection_to_unknown_device_is_unchanged():
    conn = migrate_connection_to_interface_ids({"id": "c1", "source": "x", "target": "y"}, [])
    assert conn.source_interface_id is None


def test_legacy_diagram_assigns_distinct_fallback_ports():
    diagram = migrate_diagram({
        "id": "diagram-1",
        "name": "legacy",
        "devices": [
            {"id": "r1", "type": "router", "name": "r1", "config": {"ipAddress": "10.0.0.1"}},
            {"id": "s1", "type": "server", "name": "web1"},
            {"id": "s2", "type": "server", "name": "web2"},
        ],
        "connections": [
            {"id": "c1", "from": "r1", "to": "s1"},
            {"id": "c2", "from": "r1", "to": "s2"},
        ],
    })
    c1, c2 = diagram.connections
    assert c1.source_interface_id != c2.source_interface_id
    assert c1.target_interface_id is not None


def test_diagram_drops_dangling_references(caplog):
    with caplog.at_level(logging.WARNING, logger="netdiagram.migration"):
        diagram = migrate_diagram({
            "devices": [
                {"id": "a", "type": "server", "interfaces": [{"id": "eth0", "name": "eth0"}]},
                {"id": "b", "type": "server", "interfaces": [{"id": "eth0", "name": "eth0"}]},
            ],
            "connections": [
                {"id": "c1", "source": "a", "target": "missing"},
                {"id": "c2", "source": "a", "target": "b",
                 "sourceInterfaceId": "eth0", "targetInterfaceId": "gone"},
            ],
            "groups": [{"id": "g1", "deviceIds": ["a", "missing"]}],
        })

    assert [c.id for c in diagram.connections] == ["c2"]
    assert diagram.connections[0].target_interface_id is None
    assert diagram.groups[0].device_ids == ["a"]
    assert "Dropping connection c1" in caplog.text
