"""
Network Diagram Backend - FastAPI Application

This is the main entry point for the topology backend.
It provides:
- REST API for topology operations (devices, interfaces, connections,
  selection, clipboard, undo/redo, layout, device-config templates)
- WebSocket endpoint for real-time change notifications
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Union

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from netdiagram.device_config import DeviceConfigImportOptions
from netdiagram.layers import connection_display_info, connection_style_for_layer, device_display_info
from netdiagram.layout import LayoutOptions
from netdiagram.link_status import link_status_message
from netdiagram.models import (
    CamelModel,
    CreateAnnotationRequest,
    CreateConnectionRequest,
    CreateDeviceRequest,
    DeviceType,
    InterfaceType,
    PasteRequest,
    SelectionRequest,
    TopologyInfoRequest,
    UpdateAnnotationRequest,
    UpdateConnectionRequest,
    UpdateDeviceRequest,
    UpdateInterfaceRequest,
)
from netdiagram.templates import NETWORK_TEMPLATES
from netdiagram.validation import validation_summary

from . import config
from .topology_manager import topology_manager
from .websocket_manager import ws_manager


logger = logging.getLogger(__name__)


def _dump(model: BaseModel) -> dict:
    """Serialize a model in the persisted camelCase shape."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Async change notification ---
# Bridge between sync TopologyManager callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()


def on_topology_change():
    """Callback for topology changes - sets event for async handler."""
    _change_event.set()


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()
        await ws_manager.notify_topology_updated(topology_manager.state.id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    topology_manager.on_change(on_topology_change)
    broadcaster_task = asyncio.create_task(change_broadcaster())
    logger.info("Topology backend started")

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    await ws_manager.close_all()


# --- FastAPI App ---

app = FastAPI(
    title="Network Diagram API",
    description="Backend API for the network topology editor",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Topology State ---

@app.get("/api/topology")
async def get_topology():
    """Get the current topology state."""
    return topology_manager.get_state()


@app.patch("/api/topology")
async def update_topology(request: TopologyInfoRequest):
    """Update topology-level settings (name, layer, grid)."""
    if request.name is not None:
        topology_manager.execute("rename_topology", name=request.name)
    if request.layer is not None:
        topology_manager.execute("set_layer", layer=request.layer)
    if request.grid_enabled is not None and request.grid_enabled != topology_manager.state.grid_enabled:
        topology_manager.execute("toggle_grid")
    if request.grid_size is not None:
        if request.grid_size <= 0:
            raise HTTPException(status_code=400, detail="Grid size must be positive")
        topology_manager.execute("set_grid_size", size=request.grid_size)
    return {"success": True, **topology_manager.get_state()}


# --- File Operations ---

@app.post("/api/topology/new")
async def new_topology(name: str = Query(default="Untitled Diagram")):
    """Create a new empty topology."""
    topology_manager.new_topology(name=name)
    return {"success": True, **topology_manager.get_state()}


class OpenTopologyRequest(BaseModel):
    file_path: str


@app.post("/api/topology/open")
async def open_topology(request: OpenTopologyRequest):
    """Open a topology from a JSON file (legacy files are migrated)."""
    try:
        topology_manager.open_topology(request.file_path)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to open topology: {e}")
    return {"success": True, **topology_manager.get_state()}


class SaveTopologyRequest(BaseModel):
    file_path: Optional[str] = None


@app.post("/api/topology/save")
async def save_topology(request: SaveTopologyRequest):
    """Save the topology to a JSON file."""
    try:
        path = topology_manager.save_topology(request.file_path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
    return {"success": True, "file_path": str(path)}


@app.post("/api/topology/load")
async def load_topology(document: dict[str, Any]):
    """Load a topology from a document body (current or legacy shape)."""
    try:
        topology_manager.load_document(document)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to load topology: {e}")
    return {"success": True, **topology_manager.get_state()}


@app.get("/api/topologies")
async def list_topologies(directory: Optional[str] = Query(default=None)):
    """List diagram files in a directory."""
    return {
        "success": True,
        "topologies": topology_manager.list_topologies(directory or config.DIAGRAM_DIR)
    }


@app.get("/api/templates")
async def list_templates():
    """List the starter topologies."""
    return {
        "success": True,
        "templates": [
            {"id": t.id, "name": t.name, "description": t.description,
             "deviceCount": len(t.devices), "connectionCount": len(t.links)}
            for t in NETWORK_TEMPLATES
        ]
    }


@app.post("/api/templates/{template_id}/load")
async def load_template(template_id: str):
    """Replace the current topology with a starter topology."""
    if topology_manager.load_template(template_id) is None:
        raise HTTPException(status_code=404, detail=f"Template not found: {template_id}")
    return {"success": True, **topology_manager.get_state()}


@app.get("/api/topology/validate")
async def validate_topology():
    """
    Validate the current topology for integrity issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = topology_manager.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


@app.get("/api/topology/display")
async def get_display():
    """Device labels and connection labels/strokes for the active layer."""
    state = topology_manager.state
    return {
        "layer": state.layer,
        "devices": {d.id: device_display_info(d, state.layer) for d in state.devices},
        "connections": {
            c.id: {
                "label": connection_display_info(c, state.layer),
                "style": _dump(connection_style_for_layer(c, state.layer)),
            }
            for c in state.connections
        },
    }


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last change to devices or connections."""
    if not topology_manager.can_undo:
        return {"success": False, "message": "Nothing to undo"}
    topology_manager.execute("undo")
    return {"success": True, **topology_manager.get_state()}


@app.post("/api/redo")
async def redo():
    """Redo the last undone change."""
    if not topology_manager.can_redo:
        return {"success": False, "message": "Nothing to redo"}
    topology_manager.execute("redo")
    return {"success": True, **topology_manager.get_state()}


# --- Device Operations ---

@app.post("/api/devices")
async def create_device(request: CreateDeviceRequest):
    """Create a new device (with default interfaces if none are given)."""
    try:
        device = topology_manager.add_device(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "device": _dump(device)}


@app.get("/api/devices/{device_id}")
async def get_device(device_id: str):
    """Get a specific device."""
    device = topology_manager.get_device(device_id)
    if device:
        return {"success": True, "device": _dump(device)}
    raise HTTPException(status_code=404, detail="Device not found")


@app.patch("/api/devices/{device_id}")
async def update_device(device_id: str, request: UpdateDeviceRequest):
    """Update a device. A given interface list replaces the current one."""
    try:
        device = topology_manager.update_device(device_id, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if device:
        return {"success": True, "device": _dump(device)}
    raise HTTPException(status_code=404, detail="Device not found")


@app.delete("/api/devices/{device_id}")
async def delete_device(device_id: str):
    """Delete a device and its connections."""
    if topology_manager.delete_device(device_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Device not found")


@app.patch("/api/devices/{device_id}/interfaces/{interface_id}")
async def update_interface(device_id: str, interface_id: str, request: UpdateInterfaceRequest):
    """Update one interface; link status is re-derived for its connections."""
    try:
        device = topology_manager.update_interface(device_id, interface_id, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if device:
        return {"success": True, "device": _dump(device)}
    raise HTTPException(status_code=404, detail="Interface not found")


# --- Connection Operations ---

@app.post("/api/connections")
async def create_connection(request: CreateConnectionRequest):
    """Create a new connection."""
    connection = topology_manager.add_connection(request)
    if connection is None:
        raise HTTPException(status_code=400, detail="Source or target device not found")
    return {"success": True, "connection": _dump(connection)}


@app.get("/api/connections/{connection_id}")
async def get_connection(connection_id: str):
    """Get a specific connection."""
    connection = topology_manager.get_connection(connection_id)
    if connection:
        return {"success": True, "connection": _dump(connection)}
    raise HTTPException(status_code=404, detail="Connection not found")


@app.patch("/api/connections/{connection_id}")
async def update_connection(connection_id: str, request: UpdateConnectionRequest):
    """Update a connection. Style fields merge over the current style."""
    try:
        connection = topology_manager.update_connection(connection_id, request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if connection:
        return {"success": True, "connection": _dump(connection)}
    raise HTTPException(status_code=404, detail="Connection not found")


@app.delete("/api/connections/{connection_id}")
async def delete_connection(connection_id: str):
    """Delete a connection."""
    if topology_manager.delete_connection(connection_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Connection not found")


@app.get("/api/connections/{connection_id}/link-status")
async def get_link_status(connection_id: str):
    """Explain whether a connection's link is up, and why not."""
    status = topology_manager.link_status(connection_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Connection not found")
    return {**_dump(status), "message": link_status_message(status)}


# --- Selection & Clipboard ---

@app.post("/api/selection")
async def select(request: SelectionRequest):
    """Select devices, connections, an annotation or a drawing."""
    try:
        state = topology_manager.select(request.kind, request.ids, request.toggle)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "selection": _dump(state.selection)}


@app.delete("/api/selection")
async def clear_selection():
    topology_manager.execute("clear_selection")
    return {"success": True}


@app.post("/api/selection/delete")
async def delete_selected():
    """Delete the selected devices and connections."""
    topology_manager.execute("delete_selected")
    return {"success": True, **topology_manager.get_state()}


@app.post("/api/clipboard/copy")
async def copy_selected():
    state = topology_manager.execute("copy_selected")
    return {
        "success": True,
        "devices": len(state.clipboard.devices),
        "connections": len(state.clipboard.connections),
    }


@app.post("/api/clipboard/paste")
async def paste(request: Optional[PasteRequest] = None):
    """Paste the clipboard, offset from the originals."""
    clipboard = topology_manager.state.clipboard
    if clipboard is None or not clipboard.devices:
        raise HTTPException(status_code=400, detail="Clipboard is empty")
    state = topology_manager.execute("paste", offset=request or PasteRequest())
    return {"success": True, "selection": _dump(state.selection)}


# --- Layout ---

@app.post("/api/layout/auto")
async def auto_layout(request: LayoutOptions):
    """Automatically arrange devices."""
    try:
        box = topology_manager.auto_layout(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "success": True,
        "algorithm": request.algorithm,
        "boundingBox": _dump(box),
    }


# --- Device Config Templates ---

class DeviceConfigImportRequest(CamelModel):
    template: Union[str, dict[str, Any]]
    options: DeviceConfigImportOptions = DeviceConfigImportOptions()
    selected_ids: Optional[list[str]] = None


@app.post("/api/device-config/import")
async def import_device_config(request: DeviceConfigImportRequest):
    """Apply a device-config template (JSON text or object)."""
    try:
        topology_manager.execute(
            "import_device_config",
            template=request.template,
            options=request.options,
            selected_ids=request.selected_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **topology_manager.get_state()}


@app.get("/api/device-config/export")
async def export_device_config():
    """Export one representative config per device type."""
    return {"success": True, "template": topology_manager.export_device_config()}


# --- Annotations ---

@app.post("/api/annotations")
async def create_annotation(request: CreateAnnotationRequest):
    annotation = topology_manager.add_annotation(request)
    return {"success": True, "annotation": _dump(annotation)}


@app.patch("/api/annotations/{annotation_id}")
async def update_annotation(annotation_id: str, request: UpdateAnnotationRequest):
    annotation = topology_manager.update_annotation(annotation_id, request)
    if annotation:
        return {"success": True, "annotation": _dump(annotation)}
    raise HTTPException(status_code=404, detail="Annotation not found")


@app.delete("/api/annotations/{annotation_id}")
async def delete_annotation(annotation_id: str):
    if topology_manager.delete_annotation(annotation_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Annotation not found")


# --- Enums for Frontend ---

@app.get("/api/enums/device-types")
async def get_device_types():
    """Get available device types."""
    return {"types": [t.value for t in DeviceType]}


@app.get("/api/enums/interface-types")
async def get_interface_types():
    """Get available interface types."""
    return {"types": [t.value for t in InterfaceType]}


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive topology_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            await ws_manager.handle_message(websocket, await websocket.receive_text())
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception:
        logger.exception("WebSocket connection failed")
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    config.setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    uvicorn.run(app, host=config.HOST, port=config.PORT)
