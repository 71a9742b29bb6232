"""
Core data models for network topology diagrams.

These models define the canonical schema:
- Devices owning an ordered list of Interfaces
- Connections between devices, optionally pinned to specific interfaces
- Annotations, drawings and groups (canvas decorations, no invariants)
- History snapshots and the persisted diagram document

Field Naming Convention:
- Python attributes are snake_case
- JSON serialization outputs camelCase (`sourceInterfaceId`, `managementIp`, ...)
- Both spellings are accepted on input
- For backward compatibility, legacy connection fields (`from`/`to`,
  `sourceInterface`/`targetInterface`) are accepted and converted
"""

import ipaddress
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .ids import generate_id


VLAN_MIN = 1
VLAN_MAX = 4094

DEFAULT_STROKE_COLOR = "#1976d2"
LINK_UP_COLOR = "#4caf50"
LINK_DOWN_COLOR = "#f44336"

Layer = Literal["L1", "L2", "L3"]


class DeviceType(str, Enum):
    """Closed set of device kinds."""
    ROUTER = "router"
    SWITCH = "switch"
    FIREWALL = "firewall"
    SERVER = "server"
    LOAD_BALANCER = "load-balancer"
    CLOUD = "cloud"
    WORKSTATION = "workstation"
    ACCESS_POINT = "access-point"


class InterfaceType(str, Enum):
    """Physical medium of an interface (also used for connections)."""
    ETHERNET = "ethernet"
    SERIAL = "serial"
    FIBER = "fiber"
    WIRELESS = "wireless"


# Connections share the interface medium vocabulary
ConnectionType = InterfaceType


class InterfaceStatus(str, Enum):
    """Interface status. ADMIN_DOWN is a manual override; UP/DOWN are derived."""
    UP = "up"
    DOWN = "down"
    ADMIN_DOWN = "admin-down"


class InterfaceMode(str, Enum):
    """VLAN semantics of an interface."""
    ACCESS = "access"
    TRUNK = "trunk"
    ROUTED = "routed"


class StrokeStyle(str, Enum):
    """Line styles for connections."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


def is_valid_ipv4(value: str) -> bool:
    """Check for a dotted-quad IPv4 address."""
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting either spelling."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class Position(CamelModel):
    """A canvas coordinate."""
    x: float = 0.0
    y: float = 0.0


class InterfaceRef(CamelModel):
    """Weak back-reference from an interface to its peer. Lookup aid only."""
    device_id: str
    interface_id: Optional[str] = None


class Interface(CamelModel):
    """A port owned by exactly one device."""
    id: str = Field(default_factory=lambda: generate_id("intf"))
    name: str = ""
    type: InterfaceType = InterfaceType.ETHERNET.value
    speed: Optional[str] = None  # Mbps, numeric string
    status: InterfaceStatus = InterfaceStatus.DOWN.value
    ip_address: Optional[str] = None  # routed mode only
    subnet: Optional[str] = None
    vlans: Optional[list[int]] = None  # access/trunk mode only
    mode: Optional[InterfaceMode] = None
    connected_to: Optional[InterfaceRef] = None
    description: Optional[str] = None

    @field_validator("speed", mode="before")
    @classmethod
    def coerce_speed(cls, value: Any) -> Any:
        """Accept numeric speeds and store them as strings."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        if value == "":
            return None
        return value

    @field_validator("connected_to", mode="before")
    @classmethod
    def convert_legacy_connected_to(cls, value: Any) -> Any:
        """Legacy files store a bare device id string."""
        if isinstance(value, str):
            return {"device_id": value} if value else None
        return value

    @field_validator("vlans")
    @classmethod
    def check_vlan_range(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value is None:
            return value
        for vlan in value:
            if not VLAN_MIN <= vlan <= VLAN_MAX:
                raise ValueError(f"VLAN {vlan} out of range ({VLAN_MIN}-{VLAN_MAX})")
        return value


class DeviceConfig(CamelModel):
    """
    Device configuration.

    `hostname` and `management_ip` are the privileged fields. The legacy flat
    fields are kept for backward compatibility; any other key is allowed.
    """
    model_config = ConfigDict(extra="allow")

    hostname: Optional[str] = None
    management_ip: Optional[str] = None
    # Legacy flat fields
    ip_address: Optional[str] = None
    subnet: Optional[str] = None
    vlan: Optional[str] = None

    @field_validator("management_ip")
    @classmethod
    def check_management_ip(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_ipv4(value):
            raise ValueError(f"Invalid management IP address: {value}")
        return value or None

    @field_validator("vlan", mode="before")
    @classmethod
    def coerce_vlan(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class RouterConfig(DeviceConfig):
    routing_protocol: Optional[str] = None  # e.g. "ospf", "bgp"
    asn: Optional[int] = None


class SwitchConfig(DeviceConfig):
    stp_mode: Optional[str] = None
    management_vlan: Optional[int] = None


class FirewallConfig(DeviceConfig):
    security_zones: Optional[list[str]] = None


class ServerConfig(DeviceConfig):
    os: Optional[str] = None
    services: Optional[list[str]] = None


class LoadBalancerConfig(DeviceConfig):
    algorithm: Optional[str] = None  # e.g. "round-robin"
    virtual_ip: Optional[str] = None


class CloudConfig(DeviceConfig):
    provider: Optional[str] = None
    region: Optional[str] = None


class WorkstationConfig(DeviceConfig):
    os: Optional[str] = None


class AccessPointConfig(DeviceConfig):
    ssid: Optional[str] = None
    channel: Optional[int] = None


DEVICE_CONFIG_MODELS: dict[str, type[DeviceConfig]] = {
    DeviceType.ROUTER.value: RouterConfig,
    DeviceType.SWITCH.value: SwitchConfig,
    DeviceType.FIREWALL.value: FirewallConfig,
    DeviceType.SERVER.value: ServerConfig,
    DeviceType.LOAD_BALANCER.value: LoadBalancerConfig,
    DeviceType.CLOUD.value: CloudConfig,
    DeviceType.WORKSTATION.value: WorkstationConfig,
    DeviceType.ACCESS_POINT.value: AccessPointConfig,
}


def config_for_type(device_type: str, config: Any = None) -> DeviceConfig:
    """Validate a config dict (or config of another type) as the type's config model."""
    model = DEVICE_CONFIG_MODELS.get(device_type, DeviceConfig)
    if isinstance(config, model):
        return config
    if isinstance(config, DeviceConfig):
        config = config.model_dump(exclude_none=True)
    return model.model_validate(config or {})


class Device(CamelModel):
    """A network device on the canvas."""
    id: str = Field(default_factory=lambda: generate_id("device"))
    type: DeviceType
    name: str = ""
    position: Position = Field(default_factory=Position)
    config: SerializeAsAny[DeviceConfig] = Field(default_factory=DeviceConfig)
    interfaces: list[Interface] = Field(default_factory=list)

    @model_validator(mode='after')
    def typed_config(self) -> "Device":
        """Narrow the config to the device type's config model."""
        self.config = config_for_type(self.type, self.config)
        return self

    def get_interface(self, interface_id: Optional[str]) -> Optional[Interface]:
        """Get an interface by id."""
        if not interface_id:
            return None
        for intf in self.interfaces:
            if intf.id == interface_id:
                return intf
        return None


class ConnectionStyle(CamelModel):
    """Visual encoding of a connection."""
    stroke_style: StrokeStyle = StrokeStyle.SOLID.value
    stroke_color: str = DEFAULT_STROKE_COLOR
    stroke_width: float = 2
    animated: bool = False


class ConnectionStyleUpdate(CamelModel):
    """Partial style; unset fields keep their previous value."""
    stroke_style: Optional[StrokeStyle] = None
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    animated: Optional[bool] = None


def convert_legacy_connection_fields(data: Any) -> Any:
    """Convert legacy connection field names to the current ones."""
    if not isinstance(data, dict):
        return data
    data = dict(data)
    # 'from' is a Python keyword, so older files used it for the source
    if 'from' in data and 'source' not in data:
        data['source'] = data.pop('from')
    if 'to' in data and 'target' not in data:
        data['target'] = data.pop('to')
    # Early files stored the port *name* under sourceInterface/targetInterface
    if 'sourceInterface' in data and 'sourcePort' not in data and 'source_port' not in data:
        data['sourcePort'] = data.pop('sourceInterface')
    if 'targetInterface' in data and 'targetPort' not in data and 'target_port' not in data:
        data['targetPort'] = data.pop('targetInterface')
    return data


class Connection(CamelModel):
    """
    A link between two devices.

    Interface ids are optional: an empty value means "no interface selected",
    which is a legitimate state. `source_port`/`target_port` are legacy name
    based references, reconciled to interface ids on load.
    """
    id: str = Field(default_factory=lambda: generate_id("conn"))
    source: str
    target: str
    source_interface_id: Optional[str] = None
    target_interface_id: Optional[str] = None
    source_port: Optional[str] = None
    target_port: Optional[str] = None
    type: ConnectionType = InterfaceType.ETHERNET.value
    style: Optional[ConnectionStyle] = None
    label: Optional[str] = None
    bandwidth: Optional[str] = None  # e.g. "1 Gbps"

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return convert_legacy_connection_fields(data)

    @field_validator("source_interface_id", "target_interface_id", mode="before")
    @classmethod
    def empty_interface_is_none(cls, value: Any) -> Any:
        return value or None


class DeviceGroup(CamelModel):
    """A named group of devices. Persisted only."""
    id: str = Field(default_factory=lambda: generate_id("group"))
    name: str = "Group"
    device_ids: list[str] = Field(default_factory=list)
    position: Position = Field(default_factory=Position)
    collapsed: bool = False
    color: Optional[str] = None


class AnnotationSize(CamelModel):
    width: float
    height: float


class AnnotationStyle(CamelModel):
    background_color: Optional[str] = None
    border_color: Optional[str] = None
    border_style: Optional[StrokeStyle] = None
    border_width: Optional[float] = None
    font_size: Optional[float] = None
    font_color: Optional[str] = None
    opacity: Optional[float] = None
    z_index: Optional[int] = None


class StructuredAnnotation(CamelModel):
    """A text note or sticky note on the canvas."""
    id: str = Field(default_factory=lambda: generate_id("annotation"))
    type: Literal["text-note", "sticky"] = "text-note"
    position: Position = Field(default_factory=Position)
    size: Optional[AnnotationSize] = None
    content: Optional[str] = None
    style: Optional[AnnotationStyle] = None


class DrawingStyle(CamelModel):
    stroke: str = "#000000"
    stroke_width: float = 2
    stroke_opacity: float = 1
    stroke_linecap: Optional[Literal["round", "square", "butt"]] = None
    stroke_dasharray: Optional[str] = None
    fill: Optional[str] = None


class FreehandDrawing(CamelModel):
    """A freehand stroke or shape drawn over the canvas."""
    id: str = Field(default_factory=lambda: generate_id("drawing"))
    type: Literal["pen", "highlighter", "arrow", "rectangle"] = "pen"
    points: list[Position] = Field(default_factory=list)
    style: DrawingStyle = Field(default_factory=DrawingStyle)
    smoothing: Optional[float] = None


# --- History ---

class DiagramSnapshot(CamelModel):
    """Immutable capture of the device and connection collections."""
    devices: list[Device] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time)


class HistoryState(CamelModel):
    """Undo/redo stacks around the present snapshot."""
    past: list[DiagramSnapshot] = Field(default_factory=list)
    present: DiagramSnapshot = Field(default_factory=DiagramSnapshot)
    future: list[DiagramSnapshot] = Field(default_factory=list)


# --- Selection & Clipboard ---

class Selection(CamelModel):
    """Current selection. Single and multi selection are mutually exclusive."""
    device_id: Optional[str] = None
    connection_id: Optional[str] = None
    annotation_id: Optional[str] = None
    drawing_id: Optional[str] = None
    device_ids: list[str] = Field(default_factory=list)
    connection_ids: list[str] = Field(default_factory=list)


class Clipboard(CamelModel):
    """Single-use buffer of copied devices and connections."""
    devices: list[Device] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)


# --- Persisted document ---

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NetworkDiagram(CamelModel):
    """
    The persisted diagram document.
    This is what gets saved to/loaded from JSON files.
    """
    id: str = Field(default_factory=lambda: generate_id("diagram"))
    name: str = "Untitled Diagram"
    devices: list[Device] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    groups: list[DeviceGroup] = Field(default_factory=list)
    annotations: list[StructuredAnnotation] = Field(default_factory=list)
    drawings: list[FreehandDrawing] = Field(default_factory=list)
    layer: Layer = "L3"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict with camelCase field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "NetworkDiagram":
        """Create from a JSON dict in the current shape. Legacy files go through migration."""
        return cls.model_validate(data)


# --- API Request Models ---

class CreateDeviceRequest(CamelModel):
    """Request to create a new device."""
    type: DeviceType
    name: str = ""
    position: Position = Field(default_factory=Position)
    config: DeviceConfig = Field(default_factory=DeviceConfig)
    interfaces: Optional[list[Interface]] = None


class UpdateDeviceRequest(CamelModel):
    """Request to update an existing device (partial update)."""
    type: Optional[DeviceType] = None
    name: Optional[str] = None
    position: Optional[Position] = None
    config: Optional[DeviceConfig] = None
    interfaces: Optional[list[Interface]] = None


class UpdateInterfaceRequest(CamelModel):
    """Request to update a single interface (partial update)."""
    name: Optional[str] = None
    type: Optional[InterfaceType] = None
    speed: Optional[str] = None
    status: Optional[InterfaceStatus] = None
    ip_address: Optional[str] = None
    subnet: Optional[str] = None
    vlans: Optional[list[int]] = None
    mode: Optional[InterfaceMode] = None
    description: Optional[str] = None


class CreateConnectionRequest(CamelModel):
    """Request to create a new connection."""
    source: str
    target: str
    source_interface_id: Optional[str] = None
    target_interface_id: Optional[str] = None
    source_port: Optional[str] = None
    target_port: Optional[str] = None
    type: Optional[ConnectionType] = None
    style: Optional[ConnectionStyle] = None
    label: Optional[str] = None
    bandwidth: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return convert_legacy_connection_fields(data)


class UpdateConnectionRequest(CamelModel):
    """Request to update an existing connection. Explicit null clears an interface."""
    source_interface_id: Optional[str] = None
    target_interface_id: Optional[str] = None
    source_port: Optional[str] = None
    target_port: Optional[str] = None
    type: Optional[ConnectionType] = None
    style: Optional[ConnectionStyleUpdate] = None
    label: Optional[str] = None
    bandwidth: Optional[str] = None


class TopologyInfoRequest(CamelModel):
    """Request to update diagram-level settings."""
    name: Optional[str] = None
    layer: Optional[Layer] = None
    grid_enabled: Optional[bool] = None
    grid_size: Optional[int] = None


class SelectionRequest(CamelModel):
    """Request to select one or more entities of a kind."""
    kind: Literal["device", "connection", "annotation", "drawing"]
    ids: list[str] = Field(default_factory=list)
    toggle: bool = False


class PasteRequest(CamelModel):
    """Offset applied to pasted devices."""
    x: float = 50
    y: float = 50


class CreateAnnotationRequest(CamelModel):
    type: Literal["text-note", "sticky"] = "text-note"
    position: Position = Field(default_factory=Position)
    size: Optional[AnnotationSize] = None
    content: Optional[str] = None
    style: Optional[AnnotationStyle] = None


class UpdateAnnotationRequest(CamelModel):
    position: Optional[Position] = None
    size: Optional[AnnotationSize] = None
    content: Optional[str] = None
    style: Optional[AnnotationStyle] = None
