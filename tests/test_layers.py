from netdiagram.layers import (
    LAYER_VISIBILITY,
    connection_display_info,
    connection_style_for_layer,
    device_display_info,
)
from netdiagram.models import Connection, ConnectionStyle, Device, Interface


def device():
    return Device(
        id="d1",
        type="router",
        name="edge",
        interfaces=[
            Interface(id="i0", name="gi0/0", ip_address="10.0.0.1", subnet="255.255.255.0"),
            Interface(id="i1", name="gi0/1", vlans=[10, 20]),
        ],
    )


def test_device_info_per_layer():
    assert device_display_info(device(), "L3") == ["edge", "IP: 10.0.0.1", "Subnet: 255.255.255.0"]
    assert device_display_info(device(), "L2") == ["edge", "VLAN: 10,20"]
    assert device_display_info(device(), "L1") == ["edge"]


def test_legacy_config_addressing_wins():
    legacy = device().model_copy(update={"config": device().config.model_copy(update={"ip_address": "172.16.0.1"})})
    assert "IP: 172.16.0.1" in device_display_info(legacy, "L3")


def test_connection_info_per_layer():
    conn = Connection(id="c", source="a", target="b", source_port="gi0/0",
                      target_port="eth0", bandwidth="1 Gbps", label="uplink")
    assert connection_display_info(conn, "L1") == "gi0/0 ↔ eth0\n1 Gbps\nuplink"
    assert connection_display_info(conn, "L3") == "uplink"
    bare = Connection(id="c", source="a", target="b")
    assert connection_display_info(bare, "L3") is None


def test_connection_style_defaults_per_layer():
    bare = Connection(id="c", source="a", target="b")
    style = connection_style_for_layer(bare, "L2")
    assert style.stroke_style == "dashed"
    assert style.stroke_width == 2
    assert connection_style_for_layer(bare, "L1").stroke_width == 3

    styled = bare.model_copy(update={"style": ConnectionStyle(stroke_color="#000000")})
    assert connection_style_for_layer(styled, "L2").stroke_color == "#000000"
    assert connection_style_for_layer(styled, "L2").stroke_style == "solid"
    assert connection_style_for_layer(styled, "L1").stroke_width == 2


def test_every_layer_is_configured():
    assert set(LAYER_VISIBILITY) == {"L1", "L2", "L3"}
