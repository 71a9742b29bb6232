"""
Topology store.

The canonical state is an immutable `TopologyState`. Every operation is a pure
function `(state, ...) -> TopologyState` registered as a command, so callers
can either call the function directly or go through `dispatch`:

    state = dispatch(state, "add_device", device={"type": "router"})

Operations referencing unknown ids return the state unchanged. Every change
to devices or connections is routed through `propagate` and then recorded in
the history in a single commit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import Field

from .clipboard import DEFAULT_PASTE_OFFSET, copy_selection, paste_clipboard
from .device_config import (
    DeviceConfigImportOptions,
    DeviceConfigTemplate,
    import_device_config as apply_device_config_template,
    parse_device_config_json,
    validate_device_config,
)
from .exceptions import UnknownCommandError
from .history import new_history, record
from .history import redo as history_redo
from .history import undo as history_undo
from .ids import IdGenerator, generate_id, generate_unique_id
from .layout import LayoutOptions, apply_layout
from .link_status import LinkStatus
from .migration import create_device_interfaces, migrate_diagram
from .models import (
    CamelModel,
    Clipboard,
    Connection,
    ConnectionStyle,
    CreateAnnotationRequest,
    CreateConnectionRequest,
    CreateDeviceRequest,
    Device,
    DeviceGroup,
    FreehandDrawing,
    HistoryState,
    Interface,
    InterfaceType,
    Layer,
    NetworkDiagram,
    PasteRequest,
    Position,
    Selection,
    StructuredAnnotation,
    UpdateAnnotationRequest,
    UpdateConnectionRequest,
    UpdateDeviceRequest,
    UpdateInterfaceRequest,
    config_for_type,
)
from .propagation import (
    Endpoint,
    connection_endpoints,
    connection_link_status,
    find_device,
    propagate,
    reconcile,
)


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TopologyState(CamelModel):
    """Everything the editor holds for one open diagram."""
    id: str = Field(default_factory=lambda: generate_id("diagram"))
    name: str = "Untitled Diagram"
    devices: list[Device] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    groups: list[DeviceGroup] = Field(default_factory=list)
    annotations: list[StructuredAnnotation] = Field(default_factory=list)
    drawings: list[FreehandDrawing] = Field(default_factory=list)
    layer: Layer = "L3"
    grid_enabled: bool = True
    grid_size: int = 20
    selection: Selection = Field(default_factory=Selection)
    clipboard: Optional[Clipboard] = None
    history: HistoryState = Field(default_factory=new_history)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# --- Command registry ---

@dataclass(frozen=True)
class RegisteredCommand:
    name: str
    func: Callable[..., TopologyState]
    uses_ids: bool = False


COMMANDS: dict[str, RegisteredCommand] = {}


def command(uses_ids: bool = False):
    """Register a store operation under its function name."""
    def register(func):
        COMMANDS[func.__name__] = RegisteredCommand(func.__name__, func, uses_ids)
        return func
    return register


def dispatch(
    state: TopologyState,
    name: str,
    /,
    ids: Optional[IdGenerator] = None,
    **payload: Any
) -> TopologyState:
    """
    Run a registered command.

    Raises:
        UnknownCommandError: If no command is registered under `name`
    """
    registered = COMMANDS.get(name)
    if registered is None:
        raise UnknownCommandError(f"Unknown command: {name}")
    if registered.uses_ids:
        payload["ids"] = ids
    return registered.func(state, **payload)


# --- Helpers ---

def _noop(state: TopologyState, message: str, *args) -> TopologyState:
    logger.debug(message, *args)
    return state


def _live_ids(state: TopologyState) -> set[str]:
    ids = {d.id for d in state.devices}
    ids.update(c.id for c in state.connections)
    ids.update(a.id for a in state.annotations)
    ids.update(d.id for d in state.drawings)
    ids.update(g.id for g in state.groups)
    return ids


def _as_model(model, value):
    if isinstance(value, model):
        return value
    if isinstance(value, CamelModel):
        value = value.model_dump(exclude_unset=True)
    return model.model_validate(value)


def _set_fields(request: CamelModel) -> dict[str, Any]:
    """Fields explicitly present on a partial-update request."""
    return {name: getattr(request, name) for name in request.model_fields_set}


def _commit(
    state: TopologyState,
    devices: list[Device],
    connections: list[Connection],
    **changes: Any
) -> TopologyState:
    """Replace the collections and record a history snapshot."""
    return state.model_copy(update={
        "devices": devices,
        "connections": connections,
        "history": record(state.history, devices, connections),
        "updated_at": _utcnow(),
        **changes,
    })


def _touch(state: TopologyState, **changes: Any) -> TopologyState:
    """Change non-historical fields."""
    return state.model_copy(update={"updated_at": _utcnow(), **changes})


def _without_ids(ids: list[str], removed: set[str]) -> list[str]:
    return [i for i in ids if i not in removed]


def _prune_selection(
    selection: Selection,
    device_ids: set[str] = frozenset(),
    connection_ids: set[str] = frozenset()
) -> Selection:
    return selection.model_copy(update={
        "device_id": None if selection.device_id in device_ids else selection.device_id,
        "connection_id": None if selection.connection_id in connection_ids else selection.connection_id,
        "device_ids": _without_ids(selection.device_ids, device_ids),
        "connection_ids": _without_ids(selection.connection_ids, connection_ids),
    })


def _unique_interface_ids(
    interfaces: list[Interface],
    ids: Optional[IdGenerator]
) -> list[Interface]:
    """Re-mint interface ids that repeat within one device."""
    seen: set[str] = set()
    result = []
    for intf in interfaces:
        if intf.id in seen:
            new_id = generate_unique_id("intf", seen | {i.id for i in interfaces}, ids)
            logger.debug("Re-minting duplicate interface id %s as %s", intf.id, new_id)
            intf = intf.model_copy(update={"id": new_id})
        seen.add(intf.id)
        result.append(intf)
    return result


def _default_device_name(device_type: str) -> str:
    return device_type.replace("-", " ").title()


def _commit_device_edits(
    state: TopologyState,
    edited: dict[str, Device],
    **changes: Any
) -> TopologyState:
    """
    Commit replaced devices and propagate their interface changes.

    Interfaces that are new or differ from their previous version are
    re-derived together with their peers. Connections that referenced a
    removed interface lose that interface reference and get the link-down
    style.
    """
    endpoints: set[Endpoint] = set()
    removed: set[Endpoint] = set()
    for device in state.devices:
        if device.id not in edited:
            continue
        old_interfaces = {intf.id: intf for intf in device.interfaces}
        new_interfaces = edited[device.id].interfaces
        for intf in new_interfaces:
            if old_interfaces.get(intf.id) != intf:
                endpoints.add((device.id, intf.id))
        new_ids = {intf.id for intf in new_interfaces}
        removed.update((device.id, iid) for iid in old_interfaces if iid not in new_ids)

    devices = [edited.get(d.id, d) for d in state.devices]

    relinked = []
    connections = []
    for conn in state.connections:
        update = {}
        if (conn.source, conn.source_interface_id) in removed:
            update["source_interface_id"] = None
        if (conn.target, conn.target_interface_id) in removed:
            update["target_interface_id"] = None
        if update:
            relinked.append(conn.id)
            conn = conn.model_copy(update=update)
        connections.append(conn)

    devices, connections = propagate(devices, connections, endpoints, relinked_ids=relinked)
    return _commit(state, devices, connections, **changes)


def get_device(state: TopologyState, device_id: str) -> Optional[Device]:
    return find_device(state.devices, device_id)


def get_connection(state: TopologyState, connection_id: str) -> Optional[Connection]:
    for conn in state.connections:
        if conn.id == connection_id:
            return conn
    return None


def connection_status(state: TopologyState, connection_id: str) -> Optional[LinkStatus]:
    """Link status of a connection, or None if it does not exist."""
    conn = get_connection(state, connection_id)
    if conn is None:
        return None
    return connection_link_status(state.devices, conn)


# --- Devices ---

@command(uses_ids=True)
def add_device(
    state: TopologyState,
    device: Union[CreateDeviceRequest, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Add a device under a fresh id.

    A device created without interfaces gets the default interface set for
    its type. Interface status is derived (a new device has no links).
    """
    request = _as_model(CreateDeviceRequest, device)
    device_id = generate_unique_id("device", _live_ids(state), ids)
    config = config_for_type(request.type, request.config)

    if request.interfaces:
        interfaces = _unique_interface_ids(request.interfaces, ids)
    else:
        interfaces = create_device_interfaces(request.type, config, ids)

    new_device = Device(
        id=device_id,
        type=request.type,
        name=request.name or _default_device_name(request.type),
        position=request.position,
        config=config,
        interfaces=interfaces,
    )
    devices, connections = propagate(
        [*state.devices, new_device],
        state.connections,
        [(device_id, intf.id) for intf in interfaces],
    )
    logger.debug("Added device %s (%s)", device_id, request.type)
    return _commit(state, devices, connections)


@command(uses_ids=True)
def update_device(
    state: TopologyState,
    device_id: str,
    partial: Union[UpdateDeviceRequest, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Shallow-merge fields into a device.

    A given `interfaces` list replaces the previous list entirely; a given
    `config` replaces the previous config.
    """
    device = get_device(state, device_id)
    if device is None:
        return _noop(state, "update_device: unknown device %s", device_id)

    request = _as_model(UpdateDeviceRequest, partial)
    changes = {k: v for k, v in _set_fields(request).items() if v is not None}
    if not changes:
        return state

    device_type = changes.get("type", device.type)
    if "config" in changes or "type" in changes:
        changes["config"] = config_for_type(device_type, changes.get("config", device.config))
    if "interfaces" in changes:
        changes["interfaces"] = _unique_interface_ids(changes["interfaces"], ids)

    updated = device.model_copy(update=changes)
    if updated == device:
        return state
    return _commit_device_edits(state, {device_id: updated})


@command()
def update_interface(
    state: TopologyState,
    device_id: str,
    interface_id: str,
    partial: Union[UpdateInterfaceRequest, dict]
) -> TopologyState:
    """Replace one interface of a device with a partially updated copy."""
    device = get_device(state, device_id)
    intf = device.get_interface(interface_id) if device else None
    if intf is None:
        return _noop(state, "update_interface: unknown interface %s/%s", device_id, interface_id)

    request = _as_model(UpdateInterfaceRequest, partial)
    changes = {
        k: v for k, v in _set_fields(request).items()
        if v is not None or k not in ("name", "type", "status")
    }
    updated = Interface.model_validate({**intf.model_dump(), **changes})
    if updated == intf:
        return state

    interfaces = [updated if i.id == interface_id else i for i in device.interfaces]
    return _commit_device_edits(
        state, {device_id: device.model_copy(update={"interfaces": interfaces})}
    )


def _remove_devices(
    state: TopologyState,
    device_ids: set[str],
    connection_ids: set[str] = frozenset()
) -> TopologyState:
    """Delete devices (with their connections) and connections in one commit."""
    removed = [
        c for c in state.connections
        if c.id in connection_ids or c.source in device_ids or c.target in device_ids
    ]
    removed_ids = {c.id for c in removed}

    # Surviving endpoints of removed connections go down unless another link holds them up
    endpoints = [
        (did, iid) for c in removed for did, iid in connection_endpoints(c)
        if did not in device_ids
    ]
    devices = [d for d in state.devices if d.id not in device_ids]
    connections = [c for c in state.connections if c.id not in removed_ids]
    devices, connections = propagate(devices, connections, endpoints)

    groups = [
        g.model_copy(update={"device_ids": _without_ids(g.device_ids, device_ids)})
        if any(i in device_ids for i in g.device_ids) else g
        for g in state.groups
    ]
    logger.debug("Removed %d devices and %d connections", len(device_ids), len(removed_ids))
    return _commit(
        state, devices, connections,
        groups=groups,
        selection=_prune_selection(state.selection, device_ids, removed_ids),
    )


@command()
def delete_device(state: TopologyState, device_id: str) -> TopologyState:
    """Delete a device and every connection referencing it."""
    if get_device(state, device_id) is None:
        return _noop(state, "delete_device: unknown device %s", device_id)
    return _remove_devices(state, {device_id})


# --- Connections ---

def _resolved_interface_id(device: Device, interface_id: Optional[str]) -> Optional[str]:
    if interface_id and device.get_interface(interface_id) is None:
        logger.debug("Ignoring unknown interface %s on device %s", interface_id, device.id)
        return None
    return interface_id


@command(uses_ids=True)
def add_connection(
    state: TopologyState,
    connection: Union[CreateConnectionRequest, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Connect two devices.

    Interface ids that do not resolve are dropped. With both interfaces
    selected, the connection style, medium type and port names are derived
    and both interfaces are re-derived.
    """
    request = _as_model(CreateConnectionRequest, connection)
    source = get_device(state, request.source)
    target = get_device(state, request.target)
    if source is None or target is None:
        return _noop(
            state, "add_connection: unknown device %s",
            request.source if source is None else request.target
        )

    new_connection = Connection(
        id=generate_unique_id("conn", _live_ids(state), ids),
        source=request.source,
        target=request.target,
        source_interface_id=_resolved_interface_id(source, request.source_interface_id),
        target_interface_id=_resolved_interface_id(target, request.target_interface_id),
        source_port=request.source_port,
        target_port=request.target_port,
        type=request.type or InterfaceType.ETHERNET.value,
        style=request.style or ConnectionStyle(),
        label=request.label,
        bandwidth=request.bandwidth,
    )
    devices, connections = propagate(
        state.devices,
        [*state.connections, new_connection],
        connection_ids=[new_connection.id],
    )
    logger.debug("Added connection %s (%s -> %s)", new_connection.id, source.id, target.id)
    return _commit(state, devices, connections)


@command()
def update_connection(
    state: TopologyState,
    connection_id: str,
    partial: Union[UpdateConnectionRequest, dict]
) -> TopologyState:
    """
    Update a connection.

    Style fields merge one by one over the current style. Changing an
    interface selection re-derives the interface that was let go as well as
    the new one; with both interfaces selected the dash, color and animation
    follow the link status again.
    """
    conn = get_connection(state, connection_id)
    if conn is None:
        return _noop(state, "update_connection: unknown connection %s", connection_id)

    request = _as_model(UpdateConnectionRequest, partial)
    changes = _set_fields(request)
    if changes.get("type") is None:
        changes.pop("type", None)

    if "style" in changes:
        style_update = changes.pop("style")
        if style_update is not None:
            base = conn.style or ConnectionStyle()
            changes["style"] = base.model_copy(
                update=style_update.model_dump(exclude_none=True)
            )

    source = get_device(state, conn.source)
    target = get_device(state, conn.target)
    if "source_interface_id" in changes:
        changes["source_interface_id"] = _resolved_interface_id(source, changes["source_interface_id"])
    if "target_interface_id" in changes:
        changes["target_interface_id"] = _resolved_interface_id(target, changes["target_interface_id"])

    updated = conn.model_copy(update=changes)
    if updated == conn:
        return state

    relinked = (
        updated.source_interface_id != conn.source_interface_id
        or updated.target_interface_id != conn.target_interface_id
    )
    released = set(connection_endpoints(conn)) - set(connection_endpoints(updated))
    connections = [updated if c.id == connection_id else c for c in state.connections]
    devices, connections = propagate(
        state.devices,
        connections,
        released,
        connection_ids=[connection_id],
        relinked_ids=[connection_id] if relinked else [],
    )
    return _commit(state, devices, connections)


@command()
def delete_connection(state: TopologyState, connection_id: str) -> TopologyState:
    """Delete a connection; its interfaces are re-derived without it."""
    if get_connection(state, connection_id) is None:
        return _noop(state, "delete_connection: unknown connection %s", connection_id)
    return _remove_devices(state, set(), {connection_id})


# --- Selection ---

def _select_single(state: TopologyState, field: str, entity_id: Optional[str], exists: bool):
    if entity_id is not None and not exists:
        return _noop(state, "select: unknown %s %s", field, entity_id)
    return _touch(state, selection=Selection(**{field: entity_id}))


@command()
def select_device(state: TopologyState, device_id: Optional[str]) -> TopologyState:
    """Select one device (None clears). Clears every other selection."""
    return _select_single(state, "device_id", device_id, get_device(state, device_id) is not None)


@command()
def select_connection(state: TopologyState, connection_id: Optional[str]) -> TopologyState:
    return _select_single(
        state, "connection_id", connection_id,
        get_connection(state, connection_id) is not None
    )


@command()
def select_annotation(state: TopologyState, annotation_id: Optional[str]) -> TopologyState:
    return _select_single(
        state, "annotation_id", annotation_id,
        any(a.id == annotation_id for a in state.annotations)
    )


@command()
def select_drawing(state: TopologyState, drawing_id: Optional[str]) -> TopologyState:
    return _select_single(
        state, "drawing_id", drawing_id,
        any(d.id == drawing_id for d in state.drawings)
    )


@command()
def select_multiple_devices(state: TopologyState, device_ids: Iterable[str]) -> TopologyState:
    """Replace the selection with a set of devices; unknown ids are skipped."""
    live = {d.id for d in state.devices}
    return _touch(state, selection=Selection(device_ids=[i for i in device_ids if i in live]))


@command()
def select_multiple_connections(state: TopologyState, connection_ids: Iterable[str]) -> TopologyState:
    live = {c.id for c in state.connections}
    return _touch(state, selection=Selection(connection_ids=[i for i in connection_ids if i in live]))


@command()
def toggle_device_selection(state: TopologyState, device_id: str) -> TopologyState:
    """Add a device to, or remove it from, the multi-selection."""
    if get_device(state, device_id) is None:
        return _noop(state, "toggle_device_selection: unknown device %s", device_id)

    selected = state.selection.device_ids
    if device_id in selected:
        selection = state.selection.model_copy(update={"device_ids": _without_ids(selected, {device_id})})
    else:
        selection = Selection(device_ids=[*selected, device_id])
    return _touch(state, selection=selection)


@command()
def toggle_connection_selection(state: TopologyState, connection_id: str) -> TopologyState:
    if get_connection(state, connection_id) is None:
        return _noop(state, "toggle_connection_selection: unknown connection %s", connection_id)

    selected = state.selection.connection_ids
    if connection_id in selected:
        selection = state.selection.model_copy(
            update={"connection_ids": _without_ids(selected, {connection_id})}
        )
    else:
        selection = Selection(connection_ids=[*selected, connection_id])
    return _touch(state, selection=selection)


@command()
def clear_selection(state: TopologyState) -> TopologyState:
    return _touch(state, selection=Selection())


@command()
def delete_selected(state: TopologyState) -> TopologyState:
    """Delete the multi-selected devices (with their connections) and connections."""
    device_ids = set(state.selection.device_ids)
    connection_ids = set(state.selection.connection_ids)
    if not device_ids and not connection_ids:
        return _noop(state, "delete_selected: nothing selected")
    return _remove_devices(state, device_ids, connection_ids)


# --- Clipboard ---

@command()
def copy_selected(state: TopologyState) -> TopologyState:
    """Copy the selected devices and connections to the clipboard."""
    clipboard = copy_selection(state.devices, state.connections, state.selection)
    logger.debug(
        "Copied %d devices and %d connections",
        len(clipboard.devices), len(clipboard.connections)
    )
    return _touch(state, clipboard=clipboard)


@command(uses_ids=True)
def paste(
    state: TopologyState,
    offset: Union[PasteRequest, dict, tuple[float, float], None] = None,
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Paste the clipboard as new devices and connections.

    The pasted entities become the multi-selection and the clipboard is
    emptied.
    """
    if state.clipboard is None or not state.clipboard.devices:
        return _noop(state, "paste: clipboard is empty")

    if offset is None:
        delta = DEFAULT_PASTE_OFFSET
    elif isinstance(offset, tuple):
        delta = offset
    else:
        request = _as_model(PasteRequest, offset)
        delta = (request.x, request.y)

    new_devices, new_connections = paste_clipboard(state.clipboard, _live_ids(state), delta, ids)
    devices, connections = propagate(
        [*state.devices, *new_devices],
        [*state.connections, *new_connections],
        [(d.id, intf.id) for d in new_devices for intf in d.interfaces],
        connection_ids=[c.id for c in new_connections],
    )
    return _commit(
        state, devices, connections,
        clipboard=None,
        selection=Selection(
            device_ids=[d.id for d in new_devices],
            connection_ids=[c.id for c in new_connections],
        ),
    )


# --- History ---

def _restore(state: TopologyState, history: HistoryState) -> TopologyState:
    return _touch(
        state,
        devices=list(history.present.devices),
        connections=list(history.present.connections),
        history=history,
        selection=Selection(),
    )


@command()
def undo(state: TopologyState) -> TopologyState:
    history = history_undo(state.history)
    if history is None:
        return _noop(state, "undo: nothing to undo")
    return _restore(state, history)


@command()
def redo(state: TopologyState) -> TopologyState:
    history = history_redo(state.history)
    if history is None:
        return _noop(state, "redo: nothing to redo")
    return _restore(state, history)


# --- Layout ---

@command()
def auto_layout(
    state: TopologyState,
    options: Union[LayoutOptions, dict, None] = None
) -> TopologyState:
    """
    Reposition every device with a layout algorithm.

    Raises:
        UnknownLayoutAlgorithmError: If the algorithm is not recognized
    """
    options = _as_model(LayoutOptions, options or {})
    result = apply_layout(state.devices, state.connections, options)

    positions = {d.id: d.position for d in result.devices}
    devices = [
        d.model_copy(update={"position": positions[d.id]}) if d.id in positions else d
        for d in state.devices
    ]
    if all(d.position == old.position for d, old in zip(devices, state.devices)):
        return _noop(state, "auto_layout: positions unchanged")

    selection = state.selection.model_copy(update={"device_id": None, "connection_id": None})
    return _commit(state, devices, state.connections, selection=selection)


# --- Document ---

@command(uses_ids=True)
def load_diagram(
    state: TopologyState,
    document: Union[NetworkDiagram, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Replace the state with a persisted diagram (current or legacy shape).

    Selection, clipboard and history are reset; the history's present is the
    loaded state.
    """
    diagram = migrate_diagram(document, ids)
    devices, connections = reconcile(diagram.devices, diagram.connections)
    logger.info(
        "Loaded diagram %s: %d devices, %d connections",
        diagram.id, len(devices), len(connections)
    )
    return TopologyState(
        id=diagram.id,
        name=diagram.name,
        devices=devices,
        connections=connections,
        groups=diagram.groups,
        annotations=diagram.annotations,
        drawings=diagram.drawings,
        layer=diagram.layer,
        grid_enabled=state.grid_enabled,
        grid_size=state.grid_size,
        history=new_history(devices, connections),
        created_at=diagram.created_at,
        updated_at=diagram.updated_at,
    )


def to_diagram(state: TopologyState) -> NetworkDiagram:
    """The persisted document for a state."""
    return NetworkDiagram(
        id=state.id,
        name=state.name,
        devices=state.devices,
        connections=state.connections,
        groups=state.groups,
        annotations=state.annotations,
        drawings=state.drawings,
        layer=state.layer,
        created_at=state.created_at,
        updated_at=state.updated_at,
    )


@command()
def clear_diagram(state: TopologyState) -> TopologyState:
    """Remove every entity. Undo restores the devices and connections."""
    return _commit(
        state, [], [],
        groups=[],
        annotations=[],
        drawings=[],
        selection=Selection(),
    )


@command()
def rename_topology(state: TopologyState, name: str) -> TopologyState:
    if not name:
        return _noop(state, "rename_topology: empty name")
    return _touch(state, name=name)


@command()
def set_layer(state: TopologyState, layer: Layer) -> TopologyState:
    if layer not in ("L1", "L2", "L3"):
        return _noop(state, "set_layer: unknown layer %s", layer)
    return _touch(state, layer=layer)


@command()
def toggle_grid(state: TopologyState) -> TopologyState:
    return _touch(state, grid_enabled=not state.grid_enabled)


@command()
def set_grid_size(state: TopologyState, size: int) -> TopologyState:
    if size <= 0:
        return _noop(state, "set_grid_size: invalid size %s", size)
    return _touch(state, grid_size=size)


# --- Annotations ---

@command(uses_ids=True)
def add_annotation(
    state: TopologyState,
    annotation: Union[CreateAnnotationRequest, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    request = _as_model(CreateAnnotationRequest, annotation)
    new_annotation = StructuredAnnotation(
        id=generate_unique_id("annotation", _live_ids(state), ids),
        **{name: getattr(request, name) for name in type(request).model_fields},
    )
    return _touch(state, annotations=[*state.annotations, new_annotation])


@command()
def update_annotation(
    state: TopologyState,
    annotation_id: str,
    partial: Union[UpdateAnnotationRequest, dict]
) -> TopologyState:
    if not any(a.id == annotation_id for a in state.annotations):
        return _noop(state, "update_annotation: unknown annotation %s", annotation_id)

    changes = _set_fields(_as_model(UpdateAnnotationRequest, partial))
    annotations = [
        a.model_copy(update=changes) if a.id == annotation_id else a
        for a in state.annotations
    ]
    return _touch(state, annotations=annotations)


@command()
def delete_annotation(state: TopologyState, annotation_id: str) -> TopologyState:
    if not any(a.id == annotation_id for a in state.annotations):
        return _noop(state, "delete_annotation: unknown annotation %s", annotation_id)

    selection = state.selection
    if selection.annotation_id == annotation_id:
        selection = selection.model_copy(update={"annotation_id": None})
    return _touch(
        state,
        annotations=[a for a in state.annotations if a.id != annotation_id],
        selection=selection,
    )


# --- Drawings ---

@command(uses_ids=True)
def add_drawing(
    state: TopologyState,
    drawing: Union[FreehandDrawing, dict],
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """Add a finished drawing. Strokes with fewer than two points are discarded."""
    drawing = _as_model(FreehandDrawing, drawing)
    if len(drawing.points) < 2:
        return _noop(state, "add_drawing: %d points is not a stroke", len(drawing.points))

    new_drawing = drawing.model_copy(update={
        "id": generate_unique_id("drawing", _live_ids(state), ids)
    })
    return _touch(state, drawings=[*state.drawings, new_drawing])


@command()
def delete_drawing(state: TopologyState, drawing_id: str) -> TopologyState:
    if not any(d.id == drawing_id for d in state.drawings):
        return _noop(state, "delete_drawing: unknown drawing %s", drawing_id)

    selection = state.selection
    if selection.drawing_id == drawing_id:
        selection = selection.model_copy(update={"drawing_id": None})
    return _touch(
        state,
        drawings=[d for d in state.drawings if d.id != drawing_id],
        selection=selection,
    )


@command()
def clear_drawings(state: TopologyState) -> TopologyState:
    return _touch(
        state,
        drawings=[],
        selection=state.selection.model_copy(update={"drawing_id": None}),
    )


# --- Groups ---

def _replace_group(state: TopologyState, group_id: str, **changes) -> TopologyState:
    return _touch(state, groups=[
        g.model_copy(update=changes) if g.id == group_id else g
        for g in state.groups
    ])


def _get_group(state: TopologyState, group_id: str) -> Optional[DeviceGroup]:
    for group in state.groups:
        if group.id == group_id:
            return group
    return None


@command(uses_ids=True)
def create_group_from_selected(
    state: TopologyState,
    name: str = "Group",
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """Group the selected devices; the group sits at their top-left corner."""
    device_ids = list(state.selection.device_ids)
    if state.selection.device_id and state.selection.device_id not in device_ids:
        device_ids.append(state.selection.device_id)
    members = [d for d in state.devices if d.id in device_ids]
    if not members:
        return _noop(state, "create_group_from_selected: no devices selected")

    group = DeviceGroup(
        id=generate_unique_id("group", _live_ids(state), ids),
        name=name,
        device_ids=[d.id for d in members],
        position=Position(
            x=min(d.position.x for d in members),
            y=min(d.position.y for d in members),
        ),
    )
    return _touch(state, groups=[*state.groups, group])


@command()
def toggle_group_collapse(state: TopologyState, group_id: str) -> TopologyState:
    group = _get_group(state, group_id)
    if group is None:
        return _noop(state, "toggle_group_collapse: unknown group %s", group_id)
    return _replace_group(state, group_id, collapsed=not group.collapsed)


@command()
def delete_group(state: TopologyState, group_id: str) -> TopologyState:
    """Delete a group; its devices are kept."""
    if _get_group(state, group_id) is None:
        return _noop(state, "delete_group: unknown group %s", group_id)
    return _touch(state, groups=[g for g in state.groups if g.id != group_id])


@command()
def add_device_to_group(state: TopologyState, device_id: str, group_id: str) -> TopologyState:
    group = _get_group(state, group_id)
    if group is None or get_device(state, device_id) is None:
        return _noop(state, "add_device_to_group: unknown group %s or device %s", group_id, device_id)
    if device_id in group.device_ids:
        return state
    return _replace_group(state, group_id, device_ids=[*group.device_ids, device_id])


@command()
def remove_device_from_group(state: TopologyState, device_id: str, group_id: str) -> TopologyState:
    group = _get_group(state, group_id)
    if group is None or device_id not in group.device_ids:
        return _noop(state, "remove_device_from_group: %s not in group %s", device_id, group_id)
    return _replace_group(state, group_id, device_ids=_without_ids(group.device_ids, {device_id}))


# --- Device configuration ---

@command(uses_ids=True)
def import_device_config(
    state: TopologyState,
    template: Union[DeviceConfigTemplate, dict, str],
    options: Union[DeviceConfigImportOptions, dict, None] = None,
    selected_ids: Optional[Iterable[str]] = None,
    ids: Optional[IdGenerator] = None
) -> TopologyState:
    """
    Apply a device-config template to the matching devices.

    In "selected" mode the current device selection is used unless
    `selected_ids` is given.

    Raises:
        DeviceConfigError: If the template text or object is invalid
    """
    if isinstance(template, str):
        template = parse_device_config_json(template)
    elif isinstance(template, dict):
        template = validate_device_config(template)
    options = _as_model(DeviceConfigImportOptions, options or {})

    if selected_ids is None:
        selected = set(state.selection.device_ids)
        if state.selection.device_id:
            selected.add(state.selection.device_id)
    else:
        selected = set(selected_ids)

    updated = apply_device_config_template(state.devices, template, options, selected, ids)
    edited = {new.id: new for new, old in zip(updated, state.devices) if new != old}
    if not edited:
        return _noop(state, "import_device_config: no devices matched")

    logger.info("Applied device config template to %d devices", len(edited))
    return _commit_device_edits(state, edited)
