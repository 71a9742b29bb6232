"""
Network Diagram Core - Topology model, link status, layout, and history.

This package holds the topology state engine used by the backend API: the
data model, link-status derivation, auto-layout, undo/redo history,
clipboard, legacy-file migration, and the command-based topology store.
"""

from .models import (
    # Enums
    DeviceType,
    InterfaceType,
    InterfaceStatus,
    InterfaceMode,
    StrokeStyle,
    # Core models
    Position,
    Interface,
    InterfaceRef,
    DeviceConfig,
    Device,
    ConnectionStyle,
    Connection,
    DeviceGroup,
    StructuredAnnotation,
    FreehandDrawing,
    Selection,
    Clipboard,
    DiagramSnapshot,
    HistoryState,
    NetworkDiagram,
    DEVICE_CONFIG_MODELS,
    # Request models (for API)
    CreateDeviceRequest,
    UpdateDeviceRequest,
    UpdateInterfaceRequest,
    CreateConnectionRequest,
    UpdateConnectionRequest,
    TopologyInfoRequest,
    SelectionRequest,
    PasteRequest,
    CreateAnnotationRequest,
    UpdateAnnotationRequest,
)

from .exceptions import (
    TopologyError,
    IdGenerationError,
    UnknownCommandError,
    LayoutError,
    UnknownLayoutAlgorithmError,
    DeviceConfigError,
)
from .ids import IdGenerator, UuidIdGenerator, SequentialIdGenerator, generate_unique_id
from .link_status import (
    LinkStatus,
    can_interface_connect,
    determine_interface_status,
    determine_link_status,
    connection_style_from_link_status,
    link_status_message,
)
from .propagation import propagate, reconcile
from .layout import LayoutOptions, LayoutResult, BoundingBox, apply_layout
from .history import MAX_HISTORY_SIZE, can_undo, can_redo
from .migration import migrate_device_to_interfaces, migrate_connection_to_interface_ids, migrate_diagram
from .device_config import (
    DeviceConfigTemplate,
    DeviceConfigImportOptions,
    export_device_config,
    parse_device_config_json,
    stringify_device_config,
)
from .layers import device_display_info, connection_display_info, connection_style_for_layer
from .templates import NETWORK_TEMPLATES, NetworkTemplate, get_template, create_diagram_from_template
from .validation import validate_topology, validation_summary, ValidationIssue, IssueSeverity
from .store import TopologyState, COMMANDS, dispatch, to_diagram

__all__ = [
    # Enums
    "DeviceType",
    "InterfaceType",
    "InterfaceStatus",
    "InterfaceMode",
    "StrokeStyle",
    # Models
    "Position",
    "Interface",
    "InterfaceRef",
    "DeviceConfig",
    "Device",
    "ConnectionStyle",
    "Connection",
    "DeviceGroup",
    "StructuredAnnotation",
    "FreehandDrawing",
    "Selection",
    "Clipboard",
    "DiagramSnapshot",
    "HistoryState",
    "NetworkDiagram",
    "DEVICE_CONFIG_MODELS",
    # Request models
    "CreateDeviceRequest",
    "UpdateDeviceRequest",
    "UpdateInterfaceRequest",
    "CreateConnectionRequest",
    "UpdateConnectionRequest",
    "TopologyInfoRequest",
    "SelectionRequest",
    "PasteRequest",
    "CreateAnnotationRequest",
    "UpdateAnnotationRequest",
    # Errors
    "TopologyError",
    "IdGenerationError",
    "UnknownCommandError",
    "LayoutError",
    "UnknownLayoutAlgorithmError",
    "DeviceConfigError",
    # Ids
    "IdGenerator",
    "UuidIdGenerator",
    "SequentialIdGenerator",
    "generate_unique_id",
    # Link status
    "LinkStatus",
    "can_interface_connect",
    "determine_interface_status",
    "determine_link_status",
    "connection_style_from_link_status",
    "link_status_message",
    "propagate",
    "reconcile",
    # Layout
    "LayoutOptions",
    "LayoutResult",
    "BoundingBox",
    "apply_layout",
    # History
    "MAX_HISTORY_SIZE",
    "can_undo",
    "can_redo",
    # Migration
    "migrate_device_to_interfaces",
    "migrate_connection_to_interface_ids",
    "migrate_diagram",
    # Device config
    "DeviceConfigTemplate",
    "DeviceConfigImportOptions",
    "export_device_config",
    "parse_device_config_json",
    "stringify_device_config",
    # Layers
    "device_display_info",
    "connection_display_info",
    "connection_style_for_layer",
    # Templates
    "NETWORK_TEMPLATES",
    "NetworkTemplate",
    "get_template",
    "create_diagram_from_template",
    # Validation
    "validate_topology",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Store
    "TopologyState",
    "COMMANDS",
    "dispatch",
    "to_diagram",
]
