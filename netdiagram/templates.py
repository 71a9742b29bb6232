"""
Starter topologies.

Each template lists its devices and the links between them by device index.
`create_diagram_from_template` turns one into a persisted-shape document for
`load_diagram`; interface ids are left unset so loading assigns free ports.
"""

import logging
from typing import Optional

from pydantic import Field

from .ids import IdGenerator, generate_id
from .migration import create_device_interfaces
from .models import CamelModel, Device, DeviceConfig


logger = logging.getLogger(__name__)


class TemplateDevice(CamelModel):
    type: str
    name: str
    x: float
    y: float
    config: dict = Field(default_factory=dict)


class TemplateLink(CamelModel):
    source_index: int
    target_index: int
    label: Optional[str] = None


class NetworkTemplate(CamelModel):
    id: str
    name: str
    description: str
    devices: list[TemplateDevice]
    links: list[TemplateLink]


def _device(device_type: str, name: str, x: float, y: float, **config) -> TemplateDevice:
    return TemplateDevice(type=device_type, name=name, x=x, y=y, config=config)


def _links(*pairs: tuple[int, int, str]) -> list[TemplateLink]:
    return [TemplateLink(source_index=s, target_index=t, label=label) for s, t, label in pairs]


NETWORK_TEMPLATES: list[NetworkTemplate] = [
    NetworkTemplate(
        id="simple-lan",
        name="Simple LAN",
        description="A basic local area network with router, switch, and workstations",
        devices=[
            _device("router", "Main Router", 300, 50, ipAddress="192.168.1.1", subnet="255.255.255.0"),
            _device("switch", "Core Switch", 300, 200, vlan="1"),
            _device("workstation", "PC 1", 150, 350, ipAddress="192.168.1.10"),
            _device("workstation", "PC 2", 300, 350, ipAddress="192.168.1.11"),
            _device("workstation", "PC 3", 450, 350, ipAddress="192.168.1.12"),
        ],
        links=_links(
            (0, 1, "Uplink"),
            (1, 2, "Port 1"),
            (1, 3, "Port 2"),
            (1, 4, "Port 3"),
        ),
    ),
    NetworkTemplate(
        id="dmz-network",
        name="DMZ Network",
        description="Corporate network with DMZ, internal network, and firewall",
        devices=[
            _device("router", "Internet Router", 300, 50, ipAddress="203.0.113.1"),
            _device("firewall", "Perimeter Firewall", 300, 150, ipAddress="203.0.113.2"),
            _device("switch", "DMZ Switch", 150, 250, vlan="10"),
            _device("switch", "Internal Switch", 450, 250, vlan="20"),
            _device("server", "Web Server", 50, 350, ipAddress="10.0.10.10"),
            _device("server", "Mail Server", 250, 350, ipAddress="10.0.10.20"),
            _device("workstation", "Admin PC", 400, 350, ipAddress="10.0.20.10"),
            _device("server", "File Server", 550, 350, ipAddress="10.0.20.20"),
        ],
        links=_links(
            (0, 1, "Internet"),
            (1, 2, "DMZ"),
            (1, 3, "Internal"),
            (2, 4, "Web"),
            (2, 5, "Mail"),
            (3, 6, "Admin"),
            (3, 7, "Files"),
        ),
    ),
    NetworkTemplate(
        id="cloud-hybrid",
        name="Cloud Hybrid Network",
        description="Hybrid cloud architecture with on-premises and cloud resources",
        devices=[
            _device("router", "Branch Router", 100, 100, ipAddress="192.168.1.1"),
            _device("firewall", "Branch Firewall", 100, 200),
            _device("switch", "Branch Switch", 100, 300),
            _device("workstation", "Employee PC", 100, 400, ipAddress="192.168.1.10"),
            _device("cloud", "AWS Cloud", 400, 150),
            _device("load-balancer", "Cloud Load Balancer", 400, 250),
            _device("server", "Web Server 1", 350, 350, ipAddress="10.0.1.10"),
            _device("server", "Web Server 2", 450, 350, ipAddress="10.0.1.11"),
        ],
        links=_links(
            (0, 1, "WAN"),
            (1, 2, "Secured"),
            (2, 3, "LAN"),
            (0, 4, "VPN Tunnel"),
            (4, 5, "Cloud LB"),
            (5, 6, "Server 1"),
            (5, 7, "Server 2"),
        ),
    ),
]


def get_template(template_id: str) -> Optional[NetworkTemplate]:
    """Look up a template by id."""
    for template in NETWORK_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def _next_id(prefix: str, ids: Optional[IdGenerator]) -> str:
    return generate_id(prefix) if ids is None else ids.next_id(prefix)


def create_diagram_from_template(
    template: NetworkTemplate,
    ids: Optional[IdGenerator] = None
) -> dict:
    """
    Build a diagram document from a template.

    Devices get their default interface set; connections name only the
    devices they join.
    """
    devices = []
    for entry in template.devices:
        config = DeviceConfig.model_validate(entry.config)
        devices.append(Device(
            id=_next_id("device", ids),
            type=entry.type,
            name=entry.name,
            position={"x": entry.x, "y": entry.y},
            config=config.model_copy(update={"hostname": entry.name}),
            interfaces=create_device_interfaces(entry.type, config, ids),
        ))

    connections = [
        {
            "id": _next_id("conn", ids),
            "source": devices[link.source_index].id,
            "target": devices[link.target_index].id,
            "label": link.label,
        }
        for link in template.links
    ]

    logger.debug("Built diagram from template %s", template.id)
    return {
        "id": _next_id("diagram", ids),
        "name": template.name,
        "devices": devices,
        "connections": connections,
        "layer": "L3",
    }
