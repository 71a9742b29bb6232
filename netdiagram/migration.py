"""
Migration of legacy diagrams into the interface-based model.

Older files stored devices as flat records (`config.ipAddress`, `config.subnet`,
`config.vlan`) and connections as port names. Loading routes every device and
connection through this module so both shapes are accepted uniformly.
"""

import logging
from typing import Any, Optional, Union

from .ids import IdGenerator, generate_id, generate_unique_id
from .models import (
    Connection,
    Device,
    DeviceConfig,
    DeviceGroup,
    Interface,
    InterfaceMode,
    InterfaceRef,
    InterfaceStatus,
    NetworkDiagram,
    is_valid_ipv4,
)
from .propagation import find_device


logger = logging.getLogger(__name__)

DEFAULT_SPEED = "1000"

DEFAULT_INTERFACE_NAMES = {
    "router": "gi0/0",
    "switch": "gi1/0/1",
    "firewall": "eth0",
    "server": "eth0",
    "workstation": "eth0",
    "access-point": "lan0",
}

# (name, mode, description) of the extra ports each device type starts with
DEFAULT_EXTRA_INTERFACES: dict[str, list[tuple[str, str, Optional[str]]]] = {
    "router": [
        ("gi0/1", InterfaceMode.ROUTED.value, None),
        ("gi0/2", InterfaceMode.ROUTED.value, None),
    ],
    "switch": [
        ("gi1/0/2", InterfaceMode.ACCESS.value, None),
        ("gi1/0/3", InterfaceMode.ACCESS.value, None),
        ("gi1/0/4", InterfaceMode.ACCESS.value, None),
    ],
    "firewall": [
        ("eth1", InterfaceMode.ROUTED.value, "DMZ"),
        ("eth2", InterfaceMode.ROUTED.value, "Internal"),
    ],
    "server": [
        ("eth1", InterfaceMode.ACCESS.value, None),
    ],
}


def default_interface_name(device_type: str) -> str:
    """Name of the primary interface for a device type."""
    return DEFAULT_INTERFACE_NAMES.get(device_type, "eth0")


def _parse_vlan(value: Optional[str]) -> Optional[list[int]]:
    if not value:
        return None
    try:
        return [int(value)]
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric legacy VLAN %r", value)
        return None


def create_primary_interface(
    device_type: str,
    config: DeviceConfig,
    existing_ids: set[str],
    ids: Optional[IdGenerator] = None,
    speed: Optional[str] = DEFAULT_SPEED
) -> Interface:
    """Primary interface seeded from the (legacy) flat config."""
    vlans = _parse_vlan(config.vlan)
    mode = InterfaceMode.ROUTED.value if config.ip_address else InterfaceMode.ACCESS.value

    intf = Interface(
        id=generate_unique_id("intf", existing_ids, ids),
        name=default_interface_name(device_type),
        speed=speed,
        status=InterfaceStatus.DOWN.value,
        ip_address=config.ip_address,
        subnet=config.subnet,
        vlans=vlans,
        mode=mode,
    )
    existing_ids.add(intf.id)
    return intf


def create_default_interfaces(
    device_type: str,
    existing_ids: Optional[set[str]] = None,
    ids: Optional[IdGenerator] = None
) -> list[Interface]:
    """Type-specific extra ports, all down."""
    existing_ids = existing_ids if existing_ids is not None else set()
    interfaces = []
    for name, mode, description in DEFAULT_EXTRA_INTERFACES.get(device_type, []):
        intf = Interface(
            id=generate_unique_id("intf", existing_ids, ids),
            name=name,
            speed=DEFAULT_SPEED,
            status=InterfaceStatus.DOWN.value,
            mode=mode,
            description=description,
        )
        existing_ids.add(intf.id)
        interfaces.append(intf)
    return interfaces


def create_device_interfaces(
    device_type: str,
    config: DeviceConfig,
    ids: Optional[IdGenerator] = None
) -> list[Interface]:
    """
    Default interface set for a newly created device.

    Always at least one interface: the primary port plus the type's extras.
    """
    taken: set[str] = set()
    primary = create_primary_interface(device_type, config, taken, ids)
    return [primary, *create_default_interfaces(device_type, taken, ids)]


def has_interface_list(raw: dict) -> bool:
    """True when a raw device record already carries an `interfaces` list."""
    return isinstance(raw.get("interfaces"), list)


def migrate_device_to_interfaces(
    raw: Union[dict, Device],
    ids: Optional[IdGenerator] = None
) -> Device:
    """
    Upgrade a raw device record to the interface-based model.

    Records that already have an `interfaces` list are validated as-is.
    Legacy records get a primary interface seeded from their flat
    `ipAddress`/`subnet`/`vlan` config, plus the type's default extra ports.

    Args:
        raw: Device dict (current or legacy shape) or a Device
        ids: Id source for minted ids

    Returns:
        A Device with at least one interface when it was migrated
    """
    if isinstance(raw, Device):
        return raw

    data = dict(raw)
    if not data.get("id"):
        data["id"] = generate_id("device") if ids is None else ids.next_id("device")

    if has_interface_list(data):
        return Device.model_validate(data)

    raw_config = dict(data.get("config") or {})
    # The earliest format kept interfaces inside config
    nested = raw_config.pop("interfaces", None)
    if isinstance(nested, list):
        data["config"] = raw_config
        data["interfaces"] = nested
        return Device.model_validate(data)

    legacy = DeviceConfig.model_validate(
        {k: v for k, v in raw_config.items() if k not in ("managementIp", "management_ip")}
    )
    ip_address = legacy.ip_address
    management_ip = raw_config.get("managementIp") or raw_config.get("management_ip") or ip_address
    if management_ip and not is_valid_ipv4(management_ip):
        logger.warning("Dropping invalid legacy management IP %r", management_ip)
        management_ip = None

    config = legacy.model_copy(update={
        "hostname": legacy.hostname or data.get("name"),
        "management_ip": management_ip,
    })

    device_type = data.get("type")
    taken: set[str] = set()
    interfaces: list[Interface] = []
    extras = DEFAULT_EXTRA_INTERFACES.get(device_type, [])
    if config.ip_address or config.vlan or not extras:
        interfaces.append(create_primary_interface(device_type, config, taken, ids, speed=None))
    interfaces.extend(create_default_interfaces(device_type, taken, ids))

    data["config"] = config
    data["interfaces"] = interfaces
    logger.debug("Migrated legacy device %s (%d interfaces)", data["id"], len(interfaces))
    return Device.model_validate(data)


def _find_available_interface(device: Device, port_name: Optional[str]) -> Optional[Interface]:
    """Interface matching `port_name` (case-insensitive), else the first unconnected one."""
    if not device.interfaces:
        return None

    if port_name:
        wanted = port_name.lower()
        for intf in device.interfaces:
            if intf.name.lower() == wanted:
                return intf

    for intf in device.interfaces:
        if intf.connected_to is None:
            return intf
    return device.interfaces[0]


def migrate_connection_to_interface_ids(
    raw: Union[dict, Connection],
    devices: list[Device]
) -> Connection:
    """
    Resolve legacy port names to interface ids.

    Sides that already carry an interface id are kept. A missing side is
    resolved by port name, falling back to the first interface without a
    `connected_to` back-reference. Connections to unknown devices are
    returned unchanged.
    """
    connection = raw if isinstance(raw, Connection) else Connection.model_validate(raw)
    if connection.source_interface_id and connection.target_interface_id:
        return connection

    source_device = find_device(devices, connection.source)
    target_device = find_device(devices, connection.target)
    if source_device is None or target_device is None:
        return connection

    update: dict[str, Any] = {}
    if not connection.source_interface_id:
        intf = _find_available_interface(source_device, connection.source_port)
        update["source_interface_id"] = intf.id if intf else None
    if not connection.target_interface_id:
        intf = _find_available_interface(target_device, connection.target_port)
        update["target_interface_id"] = intf.id if intf else None
    return connection.model_copy(update=update)


def _mark_connected(devices: list[Device], connection: Connection) -> list[Device]:
    """Set back-references for a resolved connection so later fallbacks skip it."""
    if not (connection.source_interface_id and connection.target_interface_id):
        return devices

    links = {
        (connection.source, connection.source_interface_id):
            InterfaceRef(device_id=connection.target, interface_id=connection.target_interface_id),
        (connection.target, connection.target_interface_id):
            InterfaceRef(device_id=connection.source, interface_id=connection.source_interface_id),
    }
    updated = []
    for device in devices:
        if not any(did == device.id for did, _ in links):
            updated.append(device)
            continue
        interfaces = [
            intf.model_copy(update={"connected_to": links[(device.id, intf.id)]})
            if (device.id, intf.id) in links and intf.connected_to is None else intf
            for intf in device.interfaces
        ]
        updated.append(device.model_copy(update={"interfaces": interfaces}))
    return updated


def migrate_connections(
    raw_connections: list[Union[dict, Connection]],
    devices: list[Device],
    ids: Optional[IdGenerator] = None
) -> tuple[list[Connection], list[Device]]:
    """
    Migrate a list of connections in order.

    Each resolved connection marks its interfaces as connected, so two legacy
    connections to the same device do not both fall back to the same port.
    """
    connections = []
    for raw in raw_connections:
        if isinstance(raw, dict) and not raw.get("id"):
            raw = {**raw, "id": generate_id("conn") if ids is None else ids.next_id("conn")}
        connection = migrate_connection_to_interface_ids(raw, devices)
        devices = _mark_connected(devices, connection)
        connections.append(connection)
    return connections, devices


def _check_references(
    connections: list[Connection],
    devices: list[Device]
) -> list[Connection]:
    """Drop connections to missing devices; clear interface ids that do not resolve."""
    kept = []
    for conn in connections:
        source = find_device(devices, conn.source)
        target = find_device(devices, conn.target)
        if source is None or target is None:
            logger.warning(
                "Dropping connection %s: device %s not found",
                conn.id, conn.source if source is None else conn.target
            )
            continue

        update = {}
        if conn.source_interface_id and source.get_interface(conn.source_interface_id) is None:
            logger.warning("Connection %s: clearing unknown source interface %s",
                           conn.id, conn.source_interface_id)
            update["source_interface_id"] = None
        if conn.target_interface_id and target.get_interface(conn.target_interface_id) is None:
            logger.warning("Connection %s: clearing unknown target interface %s",
                           conn.id, conn.target_interface_id)
            update["target_interface_id"] = None
        kept.append(conn.model_copy(update=update) if update else conn)
    return kept


def migrate_diagram(
    data: Union[dict, NetworkDiagram],
    ids: Optional[IdGenerator] = None
) -> NetworkDiagram:
    """
    Parse a persisted diagram (current or legacy shape) into a NetworkDiagram.

    Every device and connection is migrated, dangling connections are dropped,
    and groups are pruned to existing devices.
    """
    if isinstance(data, NetworkDiagram):
        data = data.model_dump(by_alias=True)

    devices = [migrate_device_to_interfaces(d, ids) for d in data.get("devices") or []]
    connections, devices = migrate_connections(data.get("connections") or [], devices, ids)
    connections = _check_references(connections, devices)

    device_ids = {d.id for d in devices}
    groups = []
    for raw_group in data.get("groups") or []:
        group = DeviceGroup.model_validate(raw_group)
        groups.append(group.model_copy(update={
            "device_ids": [i for i in group.device_ids if i in device_ids]
        }))

    document = {
        key: value for key, value in data.items()
        if key not in ("devices", "connections", "groups") and value is not None
    }
    document.update(devices=devices, connections=connections, groups=groups)
    return NetworkDiagram.model_validate(document)
