"""
Topology Manager - Stateful handle around the pure topology store.

This module implements:
- Single topology state (one diagram open at a time)
- Command execution through the store's dispatch
- Dirty tracking and change callbacks for real-time sync
- JSON file persistence (legacy files are migrated on open)
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

from netdiagram.device_config import export_device_config
from netdiagram.history import can_redo, can_undo
from netdiagram.ids import IdGenerator
from netdiagram.layout import BoundingBox, bounding_box
from netdiagram.link_status import LinkStatus
from netdiagram.models import Connection, Device, StructuredAnnotation
from netdiagram.store import (
    TopologyState,
    connection_status,
    dispatch,
    get_connection,
    get_device,
    to_diagram,
)
from netdiagram.templates import create_diagram_from_template, get_template
from netdiagram.validation import ValidationIssue, validate_topology


logger = logging.getLogger(__name__)


class TopologyManager:
    """
    Owns the current TopologyState and applies commands to it.

    Every command goes through `execute`, which replaces the state, marks it
    dirty and notifies listeners when the command changed anything. Commands
    that do not apply (unknown ids) leave the state object untouched and fire
    no notification.
    """

    def __init__(self, ids: Optional[IdGenerator] = None):
        self._ids = ids
        self._state = TopologyState()
        self._file_path: Optional[Path] = None
        self._dirty = False  # True if unsaved changes exist
        self._on_change_callbacks: list[Callable] = []

    # --- Properties ---

    @property
    def state(self) -> TopologyState:
        """Get the current topology state."""
        return self._state

    @property
    def file_path(self) -> Optional[Path]:
        """Get the current file path."""
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return can_undo(self._state.history)

    @property
    def can_redo(self) -> bool:
        return can_redo(self._state.history)

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for topology changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Commands ---

    def execute(self, command: str, **payload: Any) -> TopologyState:
        """
        Run a store command against the current state.

        Raises:
            UnknownCommandError: If the command is not registered
        """
        new_state = dispatch(self._state, command, ids=self._ids, **payload)
        if new_state is self._state:
            return new_state

        self._state = new_state
        self._dirty = True
        self._notify_change()
        return new_state

    def _replace_state(self, state: TopologyState, file_path: Optional[Path] = None):
        self._state = state
        self._file_path = file_path
        self._dirty = False
        self._notify_change()

    # --- File Operations ---

    def new_topology(self, name: str = "Untitled Diagram") -> TopologyState:
        """Start a new empty topology."""
        self._replace_state(TopologyState(name=name))
        logger.info("Created new topology '%s'", name)
        return self._state

    def load_document(self, document: dict, file_path: Optional[Path] = None) -> TopologyState:
        """Replace the state with a persisted document (current or legacy shape)."""
        state = dispatch(TopologyState(), "load_diagram", ids=self._ids, document=document)
        self._replace_state(state, file_path)
        return self._state

    def load_template(self, template_id: str) -> Optional[TopologyState]:
        """Replace the state with a starter topology; None for an unknown template."""
        template = get_template(template_id)
        if template is None:
            return None
        logger.info("Loading template '%s'", template.name)
        return self.load_document(create_diagram_from_template(template, self._ids))

    def open_topology(self, file_path: Union[str, Path]) -> TopologyState:
        """Open a topology from a JSON file."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Diagram file not found: {path}")

        with open(path, 'r') as f:
            data = json.load(f)

        return self.load_document(data, path)

    def save_topology(self, file_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Save the topology to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        self._state = self._state.model_copy(update={"updated_at": datetime.now(timezone.utc)})

        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(to_diagram(self._state).to_json_dict(), f, indent=2)

        self._file_path = path
        self._dirty = False
        logger.info("Saved topology '%s' to %s", self._state.name, path)

        return path

    def list_topologies(self, directory: Union[str, Path]) -> list[dict]:
        """Describe the diagram files in a directory."""
        path = Path(directory)
        if not path.exists():
            return []

        topologies = []
        for f in sorted(path.glob("*.json")):
            try:
                with open(f) as file:
                    data = json.load(file)
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable diagram file %s", f)
                continue
            topologies.append({
                "path": str(f),
                "name": data.get("name", f.stem),
                "devices": len(data.get("devices", [])),
                "connections": len(data.get("connections", [])),
            })
        return topologies

    # --- Device Operations ---

    def add_device(self, request: Any) -> Device:
        """Add a device and return it."""
        state = self.execute("add_device", device=request)
        return state.devices[-1]

    def update_device(self, device_id: str, request: Any) -> Optional[Device]:
        """Update a device; None if it does not exist."""
        if self.get_device(device_id) is None:
            return None
        self.execute("update_device", device_id=device_id, partial=request)
        return self.get_device(device_id)

    def update_interface(self, device_id: str, interface_id: str, request: Any) -> Optional[Device]:
        """Update one interface; None if the device or interface does not exist."""
        device = self.get_device(device_id)
        if device is None or device.get_interface(interface_id) is None:
            return None
        self.execute(
            "update_interface",
            device_id=device_id, interface_id=interface_id, partial=request
        )
        return self.get_device(device_id)

    def delete_device(self, device_id: str) -> bool:
        """Delete a device and its connections."""
        if self.get_device(device_id) is None:
            return False
        self.execute("delete_device", device_id=device_id)
        return True

    def get_device(self, device_id: str) -> Optional[Device]:
        return get_device(self._state, device_id)

    # --- Connection Operations ---

    def add_connection(self, request: Any) -> Optional[Connection]:
        """Add a connection; None if either device does not exist."""
        before = self._state
        state = self.execute("add_connection", connection=request)
        if state is before:
            return None
        return state.connections[-1]

    def update_connection(self, connection_id: str, request: Any) -> Optional[Connection]:
        if self.get_connection(connection_id) is None:
            return None
        self.execute("update_connection", connection_id=connection_id, partial=request)
        return self.get_connection(connection_id)

    def delete_connection(self, connection_id: str) -> bool:
        if self.get_connection(connection_id) is None:
            return False
        self.execute("delete_connection", connection_id=connection_id)
        return True

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return get_connection(self._state, connection_id)

    def link_status(self, connection_id: str) -> Optional[LinkStatus]:
        """Link status of a connection; None if it does not exist."""
        return connection_status(self._state, connection_id)

    # --- Selection ---

    def select(self, kind: str, ids: list[str], toggle: bool = False) -> TopologyState:
        """
        Select entities of one kind.

        No ids clears that kind's selection, one id selects it, several ids
        form a multi-selection (devices and connections only). With `toggle`,
        each id is added to or removed from the multi-selection.

        Raises:
            ValueError: For a multi or toggle selection of annotations/drawings
        """
        multi_kinds = ("device", "connection")
        if (toggle or len(ids) > 1) and kind not in multi_kinds:
            raise ValueError(f"Multiple selection is not supported for {kind}s")

        if toggle:
            for entity_id in ids:
                self.execute(f"toggle_{kind}_selection", **{f"{kind}_id": entity_id})
            return self._state
        if len(ids) > 1:
            return self.execute(f"select_multiple_{kind}s", **{f"{kind}_ids": ids})
        return self.execute(f"select_{kind}", **{f"{kind}_id": ids[0] if ids else None})

    # --- Annotations ---

    def add_annotation(self, request: Any) -> StructuredAnnotation:
        state = self.execute("add_annotation", annotation=request)
        return state.annotations[-1]

    def update_annotation(self, annotation_id: str, request: Any) -> Optional[StructuredAnnotation]:
        state = self.execute("update_annotation", annotation_id=annotation_id, partial=request)
        for annotation in state.annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def delete_annotation(self, annotation_id: str) -> bool:
        if not any(a.id == annotation_id for a in self._state.annotations):
            return False
        self.execute("delete_annotation", annotation_id=annotation_id)
        return True

    # --- Layout ---

    def auto_layout(self, options: Any) -> BoundingBox:
        """Lay out all devices and return the resulting bounding box."""
        state = self.execute("auto_layout", options=options)
        return bounding_box(state.devices)

    # --- Device Config ---

    def export_device_config(self) -> dict:
        template = export_device_config(self._state.devices)
        return template.model_dump(mode="json", by_alias=True, exclude_none=True)

    # --- Validation ---

    def validate(self) -> list[ValidationIssue]:
        return validate_topology(self._state.devices, self._state.connections)

    # --- State ---

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        state = self._state
        return {
            "topology": to_diagram(state).to_json_dict(),
            "view": {
                "layer": state.layer,
                "gridEnabled": state.grid_enabled,
                "gridSize": state.grid_size,
            },
            "selection": state.selection.model_dump(mode="json", by_alias=True),
            "hasClipboard": state.clipboard is not None,
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }


# Global instance for the application
topology_manager = TopologyManager()
