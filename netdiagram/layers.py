"""
L1/L2/L3 display filtering.

The active layer decides which device and connection attributes are shown:
L1 (physical) shows ports and bandwidth, L2 adds VLANs, L3 shows addressing.
Each layer also has a default connection stroke.
"""

from typing import Optional

from .models import (
    DEFAULT_STROKE_COLOR,
    CamelModel,
    Connection,
    ConnectionStyle,
    Device,
    Layer,
    StrokeStyle,
)


class LayerVisibility(CamelModel):
    show_ip_address: bool
    show_subnet: bool
    show_vlan: bool
    show_ports: bool
    show_bandwidth: bool
    stroke_style: StrokeStyle
    stroke_width: float


LAYER_VISIBILITY: dict[str, LayerVisibility] = {
    "L1": LayerVisibility(
        show_ip_address=False, show_subnet=False, show_vlan=False,
        show_ports=True, show_bandwidth=True,
        stroke_style=StrokeStyle.SOLID, stroke_width=3,
    ),
    "L2": LayerVisibility(
        show_ip_address=False, show_subnet=False, show_vlan=True,
        show_ports=True, show_bandwidth=True,
        stroke_style=StrokeStyle.DASHED, stroke_width=2,
    ),
    "L3": LayerVisibility(
        show_ip_address=True, show_subnet=True, show_vlan=False,
        show_ports=False, show_bandwidth=False,
        stroke_style=StrokeStyle.DOTTED, stroke_width=2,
    ),
}


def _addressing(device: Device) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """(ip, subnet, vlan) from the legacy config, else from the first interface carrying them."""
    ip_address = device.config.ip_address
    subnet = device.config.subnet
    vlan = device.config.vlan
    for intf in device.interfaces:
        ip_address = ip_address or intf.ip_address
        subnet = subnet or intf.subnet
        if not vlan and intf.vlans:
            vlan = ",".join(str(v) for v in intf.vlans)
    return ip_address, subnet, vlan


def device_display_info(device: Device, layer: Layer) -> list[str]:
    """Lines of text shown under a device for the given layer."""
    settings = LAYER_VISIBILITY[layer]
    ip_address, subnet, vlan = _addressing(device)

    info = [device.name]
    if settings.show_ip_address and ip_address:
        info.append(f"IP: {ip_address}")
    if settings.show_subnet and subnet:
        info.append(f"Subnet: {subnet}")
    if settings.show_vlan and vlan:
        info.append(f"VLAN: {vlan}")
    return info


def connection_display_info(connection: Connection, layer: Layer) -> Optional[str]:
    """Label text for a connection, or None when nothing is shown."""
    settings = LAYER_VISIBILITY[layer]
    parts = []

    if settings.show_ports and (connection.source_port or connection.target_port):
        parts.append(f"{connection.source_port or '?'} ↔ {connection.target_port or '?'}")
    if settings.show_bandwidth and connection.bandwidth:
        parts.append(connection.bandwidth)
    if connection.label:
        parts.append(connection.label)

    return "\n".join(parts) if parts else None


def connection_style_for_layer(connection: Connection, layer: Layer) -> ConnectionStyle:
    """The connection's own style; unstyled connections get the layer's stroke defaults."""
    if connection.style is not None:
        return connection.style
    settings = LAYER_VISIBILITY[layer]
    return ConnectionStyle(
        stroke_style=settings.stroke_style,
        stroke_color=DEFAULT_STROKE_COLOR,
        stroke_width=settings.stroke_width,
        animated=False,
    )
