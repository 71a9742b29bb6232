"""
Copy/paste of devices and connections.

Pasting duplicates the buffered devices under fresh ids and rebuilds only
those connections whose both endpoints were copied. Interface ids are minted
anew and connection interface references are remapped to them.
"""

import logging
from typing import Iterable, Optional

from .ids import IdGenerator, generate_unique_id
from .models import Clipboard, Connection, Device, Position, Selection


logger = logging.getLogger(__name__)

DEFAULT_PASTE_OFFSET = (50.0, 50.0)
COPY_SUFFIX = " (Copy)"


def _ordered_union(multi: list[str], single: Optional[str]) -> list[str]:
    ids = list(multi)
    if single and single not in ids:
        ids.append(single)
    return ids


def copy_selection(
    devices: list[Device],
    connections: list[Connection],
    selection: Selection
) -> Clipboard:
    """Buffer the multi-selected plus singly-selected devices and connections."""
    device_ids = _ordered_union(selection.device_ids, selection.device_id)
    connection_ids = _ordered_union(selection.connection_ids, selection.connection_id)

    by_id = {d.id: d for d in devices}
    conn_by_id = {c.id: c for c in connections}
    return Clipboard(
        devices=[by_id[i].model_copy(deep=True) for i in device_ids if i in by_id],
        connections=[conn_by_id[i].model_copy(deep=True) for i in connection_ids if i in conn_by_id],
    )


def _duplicate_device(
    device: Device,
    new_id: str,
    offset: tuple[float, float],
    ids: Optional[IdGenerator]
) -> tuple[Device, dict[str, str]]:
    """Copy a device with fresh interface ids and no back-references."""
    interface_map: dict[str, str] = {}
    taken: set[str] = set()
    interfaces = []
    for intf in device.interfaces:
        new_intf_id = generate_unique_id("intf", taken, ids)
        taken.add(new_intf_id)
        interface_map[intf.id] = new_intf_id
        interfaces.append(intf.model_copy(update={"id": new_intf_id, "connected_to": None}))

    copy = device.model_copy(deep=True, update={
        "id": new_id,
        "name": f"{device.name}{COPY_SUFFIX}",
        "position": Position(
            x=device.position.x + offset[0],
            y=device.position.y + offset[1],
        ),
        "interfaces": interfaces,
    })
    return copy, interface_map


def paste_clipboard(
    clipboard: Clipboard,
    existing_ids: Iterable[str],
    offset: tuple[float, float] = DEFAULT_PASTE_OFFSET,
    ids: Optional[IdGenerator] = None
) -> tuple[list[Device], list[Connection]]:
    """
    Duplicate the clipboard contents.

    Args:
        clipboard: Buffered devices and connections
        existing_ids: Ids already live in the topology
        offset: Translation applied to every pasted device
        ids: Id source

    Returns:
        (new_devices, new_connections). Connections with an endpoint outside
        the copied devices are dropped.
    """
    taken = set(existing_ids)
    device_map: dict[str, str] = {}
    interface_maps: dict[str, dict[str, str]] = {}
    new_devices = []

    for device in clipboard.devices:
        new_id = generate_unique_id("device", taken, ids)
        taken.add(new_id)
        copy, interface_map = _duplicate_device(device, new_id, offset, ids)
        device_map[device.id] = new_id
        interface_maps[device.id] = interface_map
        new_devices.append(copy)

    new_connections = []
    for conn in clipboard.connections:
        if conn.source not in device_map or conn.target not in device_map:
            logger.debug("Skipping connection %s: endpoint not copied", conn.id)
            continue

        new_id = generate_unique_id("conn", taken, ids)
        taken.add(new_id)
        new_connections.append(conn.model_copy(deep=True, update={
            "id": new_id,
            "source": device_map[conn.source],
            "target": device_map[conn.target],
            "source_interface_id": interface_maps[conn.source].get(conn.source_interface_id),
            "target_interface_id": interface_maps[conn.target].get(conn.target_interface_id),
        }))

    return new_devices, new_connections
