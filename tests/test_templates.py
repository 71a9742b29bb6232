import pytest

from netdiagram.history import can_undo
from netdiagram.store import connection_status, load_diagram
from netdiagram.templates import NETWORK_TEMPLATES, create_diagram_from_template, get_template
from netdiagram.validation import IssueSeverity, validate_topology

from tests.helpers import device_named, interface_named


def load(state, ids, template_id):
    return load_diagram(state, create_diagram_from_template(get_template(template_id), ids), ids=ids)


@pytest.mark.parametrize("template", NETWORK_TEMPLATES, ids=lambda t: t.id)
def test_every_template_loads_with_intact_references(state, ids, template):
    loaded = load(state, ids, template.id)

    assert loaded.name == template.name
    assert [d.name for d in loaded.devices] == [d.name for d in template.devices]
    assert [c.label for c in loaded.connections] == [link.label for link in template.links]

    devices_by_id = {d.id: d for d in loaded.devices}
    for conn in loaded.connections:
        for device_id, interface_id in (
            (conn.source, conn.source_interface_id),
            (conn.target, conn.target_interface_id),
        ):
            assert device_id in devices_by_id
            if interface_id:
                assert devices_by_id[device_id].get_interface(interface_id) is not None

    errors = [
        issue for issue in validate_topology(loaded.devices, loaded.connections)
        if issue.severity == IssueSeverity.ERROR
    ]
    assert errors == []
    assert not can_undo(loaded.history)


def test_simple_lan_links_come_up(state, ids):
    loaded = load(state, ids, "simple-lan")

    assert all(connection_status(loaded, c.id).is_up for c in loaded.connections)

    router = device_named(loaded, "Main Router")
    switch = device_named(loaded, "Core Switch")
    uplink = interface_named(router, "gi0/0")
    assert uplink.ip_address == "192.168.1.1"
    assert uplink.status == "up"
    assert uplink.connected_to.device_id == switch.id
    assert all(intf.status == "up" for intf in switch.interfaces)
    assert router.config.hostname == "Main Router"


def test_templates_mint_fresh_ids(ids):
    template = get_template("dmz-network")
    first = create_diagram_from_template(template, ids)
    second = create_diagram_from_template(template, ids)

    assert {d.id for d in first["devices"]}.isdisjoint(d.id for d in second["devices"])
    assert first["id"] != second["id"]


def test_unknown_template():
    assert get_template("mesh") is None
