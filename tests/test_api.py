import pytest
from fastapi.testclient import TestClient

from backend.main import app
from backend.topology_manager import topology_manager


@pytest.fixture
def client():
    topology_manager.new_topology()
    return TestClient(app)


def create_device(client, device_type, name):
    response = client.post("/api/devices", json={"type": device_type, "name": name})
    assert response.status_code == 200
    return response.json()["device"]


def port(device, name):
    return next(i["id"] for i in device["interfaces"] if i["name"] == name)


def link(client):
    router = create_device(client, "router", "R")
    switch = create_device(client, "switch", "S")
    response = client.post("/api/connections", json={
        "source": router["id"],
        "target": switch["id"],
        "sourceInterfaceId": port(router, "gi0/1"),
        "targetInterfaceId": port(switch, "gi1/0/2"),
    })
    assert response.status_code == 200
    return router, switch, response.json()["connection"]


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"


def test_create_device_with_defaults(client):
    device = create_device(client, "router", "R")
    assert [i["name"] for i in device["interfaces"]] == ["gi0/0", "gi0/1", "gi0/2"]
    assert client.get(f"/api/devices/{device['id']}").status_code == 200


def test_invalid_device_type_is_rejected(client):
    assert client.post("/api/devices", json={"type": "toaster"}).status_code == 422


def test_link_up_then_admin_down(client):
    router, switch, conn = link(client)
    assert conn["style"] == {
        "strokeStyle": "solid", "strokeColor": "#4caf50", "strokeWidth": 2, "animated": True
    }

    response = client.patch(
        f"/api/devices/{switch['id']}/interfaces/{port(switch, 'gi1/0/2')}",
        json={"status": "admin-down"},
    )
    assert response.status_code == 200

    conn = client.get(f"/api/connections/{conn['id']}").json()["connection"]
    assert conn["style"]["strokeStyle"] == "dashed"
    assert conn["style"]["strokeColor"] == "#f44336"

    status = client.get(f"/api/connections/{conn['id']}/link-status").json()
    assert status == {
        "isUp": False,
        "reason": "Interface administratively down",
        "message": "Interface administratively down",
    }

    router = client.get(f"/api/devices/{router['id']}").json()["device"]
    assert next(i for i in router["interfaces"] if i["name"] == "gi0/1")["status"] == "down"


def test_delete_device_cascades(client):
    router, switch, conn = link(client)
    assert client.delete(f"/api/devices/{switch['id']}").json() == {"success": True}
    assert client.get(f"/api/connections/{conn['id']}").status_code == 404
    assert client.delete(f"/api/devices/{switch['id']}").status_code == 404


def test_unknown_entities_are_404(client):
    assert client.get("/api/devices/ghost").status_code == 404
    assert client.patch("/api/connections/ghost", json={"label": "x"}).status_code == 404
    assert client.get("/api/connections/ghost/link-status").status_code == 404


def test_connection_to_unknown_device_is_400(client):
    router = create_device(client, "router", "R")
    response = client.post("/api/connections", json={"source": router["id"], "target": "ghost"})
    assert response.status_code == 400


def test_undo_redo(client):
    assert client.post("/api/undo").json()["success"] is False
    create_device(client, "server", "web")

    state = client.post("/api/undo").json()
    assert state["topology"]["devices"] == []
    assert state["can_redo"] is True
    state = client.post("/api/redo").json()
    assert len(state["topology"]["devices"]) == 1


def test_selection_copy_paste(client):
    router, switch, conn = link(client)
    response = client.post("/api/selection", json={"kind": "device", "ids": [router["id"], switch["id"]]})
    assert response.json()["selection"]["deviceIds"] == [router["id"], switch["id"]]

    copied = client.post("/api/clipboard/copy").json()
    assert copied["devices"] == 2

    pasted = client.post("/api/clipboard/paste", json={"x": 100, "y": 0}).json()
    assert len(pasted["selection"]["deviceIds"]) == 2
    assert client.post("/api/clipboard/paste").status_code == 400

    state = client.get("/api/topology").json()
    assert len(state["topology"]["devices"]) == 4


def test_multi_select_of_annotations_is_400(client):
    response = client.post("/api/selection", json={"kind": "annotation", "ids": ["a", "b"]})
    assert response.status_code == 400


def test_auto_layout(client):
    create_device(client, "router", "R")
    create_device(client, "switch", "S")
    response = client.post("/api/layout/auto", json={"algorithm": "grid", "spacing": 100})
    assert response.json()["boundingBox"]["minX"] == -50
    assert client.post("/api/layout/auto", json={"algorithm": "spiral"}).status_code == 400


def test_device_config_export_import(client):
    create_device(client, "router", "R")
    exported = client.get("/api/device-config/export").json()["template"]
    assert "router" in exported["deviceConfigs"]

    template = {"version": "1.0", "deviceConfigs": {"router": {"config": {"hostname": "edge"}}}}
    state = client.post("/api/device-config/import", json={"template": template}).json()
    assert state["topology"]["devices"][0]["config"]["hostname"] == "edge"

    response = client.post("/api/device-config/import", json={"template": "{not json"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid JSON format"

    malformed = {"version": "1.0", "deviceConfigs": {"router": "oops"}}
    response = client.post("/api/device-config/import", json={"template": malformed})
    assert response.status_code == 400


def test_topology_settings(client):
    state = client.patch("/api/topology", json={"name": "lab", "layer": "L2", "gridEnabled": False}).json()
    assert state["topology"]["name"] == "lab"
    assert state["view"]["layer"] == "L2"
    assert state["view"]["gridEnabled"] is False
    assert client.patch("/api/topology", json={"gridSize": 0}).status_code == 400


def test_load_legacy_document(client):
    response = client.post("/api/topology/load", json={
        "name": "legacy",
        "devices": [
            {"id": "r1", "type": "router", "name": "r1", "config": {"ipAddress": "10.0.0.1"}},
            {"id": "s1", "type": "server", "name": "web"},
        ],
        "connections": [{"id": "c1", "from": "r1", "to": "s1"}],
    })
    state = response.json()
    assert state["topology"]["name"] == "legacy"
    conn = state["topology"]["connections"][0]
    assert conn["sourceInterfaceId"] and conn["targetInterfaceId"]
    assert conn["style"]["animated"] is True


def test_save_open_and_list(client, tmp_path):
    create_device(client, "router", "R")
    path = tmp_path / "lab.json"
    assert client.post("/api/topology/save", json={"file_path": str(path)}).json()["success"]
    assert client.post("/api/topology/save", json={}).json()["success"]

    client.post("/api/topology/new")
    state = client.post("/api/topology/open", json={"file_path": str(path)}).json()
    assert len(state["topology"]["devices"]) == 1

    listed = client.get("/api/topologies", params={"directory": str(tmp_path)}).json()
    assert listed["topologies"][0]["devices"] == 1
    missing = client.post("/api/topology/open", json={"file_path": str(tmp_path / "none.json")})
    assert missing.status_code == 404


def test_validate(client):
    link(client)
    result = client.get("/api/topology/validate").json()
    assert result["summary"]["valid"] is True


def test_annotations(client):
    created = client.post("/api/annotations", json={"type": "sticky", "content": "hi"}).json()
    annotation_id = created["annotation"]["id"]
    updated = client.patch(f"/api/annotations/{annotation_id}", json={"content": "bye"}).json()
    assert updated["annotation"]["content"] == "bye"
    assert client.delete(f"/api/annotations/{annotation_id}").status_code == 200
    assert client.delete(f"/api/annotations/{annotation_id}").status_code == 404


def test_websocket_ping(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}


def test_display_follows_layer(client):
    router, switch, conn = link(client)
    client.patch("/api/topology", json={"layer": "L1"})
    display = client.get("/api/topology/display").json()
    assert display["layer"] == "L1"
    assert display["devices"][router["id"]] == ["R"]
    assert display["connections"][conn["id"]]["label"] == "gi0/1 ↔ gi1/0/2"
    assert display["connections"][conn["id"]]["style"]["strokeColor"] == "#4caf50"


def test_templates_list_and_load(client):
    listed = client.get("/api/templates").json()["templates"]
    assert [t["id"] for t in listed] == ["simple-lan", "dmz-network", "cloud-hybrid"]
    assert listed[0]["deviceCount"] == 5

    response = client.post("/api/templates/dmz-network/load")
    assert response.status_code == 200
    assert response.json()["topology"]["name"] == "DMZ Network"
    assert len(response.json()["topology"]["connections"]) == 7

    assert client.post("/api/templates/mesh/load").status_code == 404
