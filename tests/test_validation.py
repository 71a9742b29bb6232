from netdiagram.models import Connection, ConnectionStyle, Device, Interface
from netdiagram.store import add_device
from netdiagram.validation import IssueSeverity, validate_topology, validation_summary


def messages(issues, severity):
    return [i.message for i in issues if i.severity == severity]


def test_empty_topology():
    issues = validate_topology([], [])
    assert messages(issues, IssueSeverity.INFO) == ["Topology has no devices"]
    assert validation_summary(issues)["valid"]


def test_store_built_topology_is_valid(linked):
    issues = validate_topology(linked.devices, linked.connections)
    assert validation_summary(issues)["errors"] == 0
    assert messages(issues, IssueSeverity.WARNING) == []


def test_isolated_device_is_reported(linked, ids):
    state = add_device(linked, {"type": "server", "name": "H"}, ids=ids)
    issues = validate_topology(state.devices, state.connections)
    info = messages(issues, IssueSeverity.INFO)
    assert any("H (" in m for m in info)


def test_dangling_references_are_errors():
    devices = [Device(id="a", type="server", interfaces=[Interface(id="a0")])]
    connections = [
        Connection(id="c1", source="a", target="ghost"),
        Connection(id="c2", source="a", target="a", source_interface_id="zz"),
    ]
    issues = validate_topology(devices, connections)
    errors = messages(issues, IssueSeverity.ERROR)
    assert "Connection references non-existent target device: ghost" in errors
    assert "Connection references non-existent source interface: zz" in errors
    assert any("Self-referencing" in m for m in messages(issues, IssueSeverity.WARNING))
    assert not validation_summary(issues)["valid"]


def test_duplicate_interface_ids():
    devices = [Device(id="a", type="server", interfaces=[Interface(id="x"), Interface(id="x")])]
    issues = validate_topology(devices, [])
    assert "Duplicate interface id x" in messages(issues, IssueSeverity.ERROR)


def test_stale_style_and_unlinked_up_interface():
    devices = [
        Device(id="a", type="server", interfaces=[Interface(id="a0", status="up")]),
        Device(id="b", type="server", interfaces=[Interface(id="b0"), Interface(id="b1", status="up")]),
    ]
    connections = [Connection(
        id="c", source="a", target="b", source_interface_id="a0", target_interface_id="b0",
        style=ConnectionStyle(),
    )]
    issues = validate_topology(devices, connections)
    warnings = messages(issues, IssueSeverity.WARNING)
    assert "Connection style does not match its link status" in warnings
    assert "Interface b1 is up but not connected" in warnings


def test_issue_to_dict_uses_camel_case():
    issues = validate_topology([], [Connection(id="c", source="x", target="y")])
    data = [i.to_dict() for i in issues if i.severity == IssueSeverity.ERROR][0]
    assert data == {
        "type": "error",
        "message": "Connection references non-existent source device: x",
        "connectionId": "c",
    }
