"""
Link-status propagation.

One pure function, `propagate`, recomputes derived state after any
interface- or connection-affecting change:
- the style (and medium type) of each affected connection
- the status and `connected_to` back-reference of each affected interface

Propagation is one hop: only the edited interfaces, the connections touching
them, and those connections' endpoints are recomputed. All updates are
returned together as replacement collections; inputs are never mutated.

Multiply-connected interfaces: an interface is up when ANY connection that
references it (with both interface ids populated) has a compatible live peer.
"""

import logging
from typing import Iterable, Optional

from .link_status import (
    LinkStatus,
    connection_style_from_link_status,
    determine_interface_status,
    determine_link_status,
)
from .models import (
    Connection,
    ConnectionStyle,
    Device,
    Interface,
    InterfaceRef,
    InterfaceStatus,
)

logger = logging.getLogger(__name__)

Endpoint = tuple[str, str]  # (device_id, interface_id)


def find_device(devices: list[Device], device_id: Optional[str]) -> Optional[Device]:
    """Get a device by id."""
    for device in devices:
        if device.id == device_id:
            return device
    return None


def find_interface(
    devices: list[Device],
    device_id: Optional[str],
    interface_id: Optional[str]
) -> Optional[Interface]:
    """Resolve an interface reference, or None if it does not resolve."""
    device = find_device(devices, device_id)
    if device is None:
        return None
    return device.get_interface(interface_id)


def connection_endpoints(connection: Connection) -> list[Endpoint]:
    """Populated (device_id, interface_id) endpoints of a connection."""
    endpoints = []
    if connection.source_interface_id:
        endpoints.append((connection.source, connection.source_interface_id))
    if connection.target_interface_id:
        endpoints.append((connection.target, connection.target_interface_id))
    return endpoints


def connection_link_status(devices: list[Device], connection: Connection) -> LinkStatus:
    """Link status of a connection from its current endpoint interfaces."""
    if not (connection.source_interface_id and connection.target_interface_id):
        return LinkStatus(is_up=False, reason="Interface not selected")
    return determine_link_status(
        find_interface(devices, connection.source, connection.source_interface_id),
        find_interface(devices, connection.target, connection.target_interface_id),
    )


def _peers(
    devices: list[Device],
    connections: list[Connection],
    device_id: str,
    interface_id: str
) -> list[tuple[InterfaceRef, Optional[Interface]]]:
    """Peers of an interface across all fully-populated connections."""
    peers = []
    for conn in connections:
        if not (conn.source_interface_id and conn.target_interface_id):
            continue
        if conn.source == device_id and conn.source_interface_id == interface_id:
            ref = InterfaceRef(device_id=conn.target, interface_id=conn.target_interface_id)
        elif conn.target == device_id and conn.target_interface_id == interface_id:
            ref = InterfaceRef(device_id=conn.source, interface_id=conn.source_interface_id)
        else:
            continue
        peers.append((ref, find_interface(devices, ref.device_id, ref.interface_id)))
    return peers


def derive_interface(
    devices: list[Device],
    connections: list[Connection],
    device_id: str,
    intf: Interface
) -> Interface:
    """Recompute one interface's status and back-reference."""
    peers = _peers(devices, connections, device_id, intf.id)

    if intf.status == InterfaceStatus.ADMIN_DOWN:
        status = InterfaceStatus.ADMIN_DOWN.value
    else:
        status = InterfaceStatus.DOWN.value
        for _, peer in peers:
            if determine_interface_status(intf, peer, True) == InterfaceStatus.UP:
                status = InterfaceStatus.UP.value
                break

    connected_to = peers[0][0] if peers else None
    if status == intf.status and connected_to == intf.connected_to:
        return intf
    return intf.model_copy(update={"status": status, "connected_to": connected_to})


def restyle_connection(
    devices: list[Device],
    connection: Connection,
    force_down_when_partial: bool = False
) -> Connection:
    """
    Recompute a connection's derived fields.

    With both interfaces selected, the style follows the link status, the
    medium type follows the interfaces when they agree, and the legacy port
    names follow the interface names. With one or neither selected, the
    connection is left alone unless `force_down_when_partial` is set, in which
    case it gets the link-down style.
    """
    source_intf = find_interface(devices, connection.source, connection.source_interface_id)
    target_intf = find_interface(devices, connection.target, connection.target_interface_id)
    both_selected = bool(connection.source_interface_id and connection.target_interface_id)

    if both_selected and source_intf is not None and target_intf is not None:
        status = determine_link_status(source_intf, target_intf)
        update = {
            "style": connection_style_from_link_status(status, connection.style),
            "source_port": source_intf.name,
            "target_port": target_intf.name,
        }
        if source_intf.type == target_intf.type:
            update["type"] = source_intf.type
        return connection.model_copy(update=update)

    if not force_down_when_partial:
        return connection

    status = connection_link_status(devices, connection)
    return connection.model_copy(update={
        "style": connection_style_from_link_status(
            status, connection.style or ConnectionStyle()
        ),
        "source_port": source_intf.name if source_intf else None,
        "target_port": target_intf.name if target_intf else None,
    })


def propagate(
    devices: list[Device],
    connections: list[Connection],
    endpoints: Iterable[Endpoint] = (),
    connection_ids: Iterable[str] = (),
    relinked_ids: Iterable[str] = ()
) -> tuple[list[Device], list[Connection]]:
    """
    Recompute derived status and style after a change.

    Args:
        devices: Current devices (already carrying the edit)
        connections: Current connections (already carrying the edit)
        endpoints: Interfaces that were edited, or that lost a connection
        connection_ids: Connections to restyle if fully populated
        relinked_ids: Connections whose interface selection changed; these
            get the link-down style when not fully populated

    Returns:
        (devices, connections) replacement collections
    """
    endpoints = set(endpoints)
    relinked = set(relinked_ids)
    touched = set(connection_ids) | relinked

    for conn in connections:
        if any(ep in endpoints for ep in connection_endpoints(conn)):
            touched.add(conn.id)

    new_connections = []
    rederive = set(endpoints)
    for conn in connections:
        if conn.id in touched:
            conn = restyle_connection(devices, conn, conn.id in relinked)
            rederive.update(connection_endpoints(conn))
        new_connections.append(conn)

    new_devices = []
    for device in devices:
        targets = {iid for did, iid in rederive if did == device.id}
        if not targets:
            new_devices.append(device)
            continue
        interfaces = [
            derive_interface(devices, new_connections, device.id, intf)
            if intf.id in targets else intf
            for intf in device.interfaces
        ]
        if all(new is old for new, old in zip(interfaces, device.interfaces)):
            new_devices.append(device)
        else:
            new_devices.append(device.model_copy(update={"interfaces": interfaces}))

    logger.debug(
        "Propagated link status: %d connections, %d interfaces",
        len(touched), len(rederive)
    )
    return new_devices, new_connections


def reconcile(
    devices: list[Device],
    connections: list[Connection]
) -> tuple[list[Device], list[Connection]]:
    """Recompute every interface status and every populated connection's style."""
    endpoints = [(d.id, intf.id) for d in devices for intf in d.interfaces]
    return propagate(devices, connections, endpoints, [c.id for c in connections])
