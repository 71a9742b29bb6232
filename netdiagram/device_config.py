"""
Device configuration templates.

A template captures one representative config and interface set per device
type, so it can be exported from one diagram and applied to the devices of
another:

    {
        "version": "1.0",
        "deviceConfigs": {
            "router": {"config": {...}, "interfaces": [{"name": "gi0/0", ...}]}
        }
    }
"""

import json
import logging
import re
from typing import Any, Literal, Optional

from pydantic import Field, ValidationError

from .exceptions import DeviceConfigError
from .ids import IdGenerator, generate_unique_id
from .models import (
    VLAN_MAX,
    VLAN_MIN,
    CamelModel,
    Device,
    DeviceType,
    Interface,
    InterfaceMode,
    InterfaceStatus,
    InterfaceType,
    config_for_type,
)


logger = logging.getLogger(__name__)

TEMPLATE_VERSION = "1.0"

# Legacy flat fields are not carried in templates
_EXCLUDED_CONFIG_KEYS = {"hostname", "managementIp", "ipAddress", "subnet", "vlan"}

_IP_PATTERN = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
    r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)
_MASK_OCTET = r"(?:255|254|252|248|240|224|192|128|0)"
_SUBNET_PATTERN = re.compile(rf"^(?:{_MASK_OCTET}\.){{3}}{_MASK_OCTET}$")


class InterfaceTemplate(CamelModel):
    """An interface without identity or back-reference."""
    name: str
    type: InterfaceType = InterfaceType.ETHERNET.value
    speed: Optional[str] = None
    status: InterfaceStatus = InterfaceStatus.DOWN.value
    ip_address: Optional[str] = None
    subnet: Optional[str] = None
    vlans: Optional[list[int]] = None
    mode: Optional[InterfaceMode] = None
    description: Optional[str] = None

    def to_interface(self, interface_id: str) -> Interface:
        return Interface(id=interface_id, **self.model_dump())


class DeviceTypeConfig(CamelModel):
    config: Optional[dict[str, Any]] = None
    interfaces: Optional[list[InterfaceTemplate]] = None


class DeviceConfigTemplate(CamelModel):
    version: str = TEMPLATE_VERSION
    device_configs: dict[str, DeviceTypeConfig] = Field(default_factory=dict)

    def for_type(self, device_type: str) -> Optional[DeviceTypeConfig]:
        return self.device_configs.get(device_type)


class DeviceConfigImportOptions(CamelModel):
    """
    mode:
        all: every device whose type has an entry in the template
        type: only devices of `device_type` (any templated type if unset)
        selected: only the devices passed as selected
    overwrite_existing: replace config values (and matching interfaces when
        merging) instead of only filling blanks
    merge_interfaces: merge by interface name instead of replacing the list
    """
    mode: Literal["all", "selected", "type"] = "all"
    device_type: Optional[DeviceType] = None
    overwrite_existing: bool = False
    merge_interfaces: bool = True


def validate_ip_address(ip: str) -> bool:
    """Dotted-quad IPv4 check."""
    return bool(_IP_PATTERN.match(ip))


def validate_subnet_mask(subnet: str) -> bool:
    """Dotted subnet mask check (each octet a valid mask byte)."""
    return bool(_SUBNET_PATTERN.match(subnet))


def validate_vlan(vlan: int) -> bool:
    return VLAN_MIN <= vlan <= VLAN_MAX


def export_device_config(devices: list[Device]) -> DeviceConfigTemplate:
    """Build a template from the first device of each type."""
    representatives: dict[str, Device] = {}
    for device in devices:
        representatives.setdefault(device.type, device)

    configs = {}
    for device_type, device in representatives.items():
        raw_config = device.config.model_dump(by_alias=True, exclude_none=True)
        config = {
            "hostname": device.config.hostname,
            "managementIp": device.config.management_ip,
        }
        config.update({k: v for k, v in raw_config.items() if k not in _EXCLUDED_CONFIG_KEYS})
        configs[device_type] = DeviceTypeConfig(
            config={k: v for k, v in config.items() if v is not None},
            interfaces=[
                InterfaceTemplate.model_validate(
                    intf.model_dump(exclude={"id", "connected_to"})
                )
                for intf in device.interfaces
            ],
        )
    return DeviceConfigTemplate(version=TEMPLATE_VERSION, device_configs=configs)


def stringify_device_config(template: DeviceConfigTemplate) -> str:
    """Pretty-printed JSON text of a template."""
    return json.dumps(
        template.model_dump(mode="json", by_alias=True, exclude_none=True),
        indent=2
    )


def parse_device_config_json(text: str) -> DeviceConfigTemplate:
    """
    Parse and validate template JSON.

    Raises:
        DeviceConfigError: With a message suitable for showing to the user
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise DeviceConfigError("Invalid JSON format") from e

    return validate_device_config(parsed)


def validate_device_config(parsed: Any) -> DeviceConfigTemplate:
    """Validate an already-decoded template object."""
    if (
        not isinstance(parsed, dict)
        or not parsed.get("version")
        or not isinstance(parsed.get("deviceConfigs"), dict)
        or not parsed["deviceConfigs"]
    ):
        raise DeviceConfigError("Invalid template structure: missing version or deviceConfigs")

    valid_types = {t.value for t in DeviceType}
    for device_type, type_config in parsed["deviceConfigs"].items():
        if device_type not in valid_types:
            raise DeviceConfigError(f"Invalid device type: {device_type}")
        if type_config is not None and not isinstance(type_config, dict):
            raise DeviceConfigError("Invalid template structure: missing version or deviceConfigs")

        interfaces = (type_config or {}).get("interfaces")
        if not isinstance(interfaces, list):
            continue
        for index, intf in enumerate(interfaces):
            if not isinstance(intf, dict) or not intf.get("name"):
                raise DeviceConfigError(
                    f"Interface at index {index} for {device_type} is missing name"
                )
            vlans = intf.get("vlans")
            if vlans is None:
                continue
            if not isinstance(vlans, list):
                raise DeviceConfigError(f"VLANs must be an array for interface {intf['name']}")
            for vlan in vlans:
                if isinstance(vlan, bool) or not isinstance(vlan, int) or not validate_vlan(vlan):
                    raise DeviceConfigError(
                        f"VLAN {vlan} out of range ({VLAN_MIN}-{VLAN_MAX}) "
                        f"for interface {intf['name']}"
                    )

    try:
        template = DeviceConfigTemplate.model_validate(parsed)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise DeviceConfigError(f"Invalid template: {location}: {error['msg']}") from e

    if template.version != TEMPLATE_VERSION:
        logger.warning("Template version %s may not be fully compatible", template.version)
    return template


def _should_import(
    device: Device,
    options: DeviceConfigImportOptions,
    selected_ids: Optional[set[str]]
) -> bool:
    if options.mode == "selected":
        return selected_ids is not None and device.id in selected_ids
    if options.mode == "type" and options.device_type is not None:
        return device.type == options.device_type
    return True


def _apply_config(device: Device, template_config: dict, overwrite: bool):
    if overwrite:
        merged = dict(template_config)
    else:
        merged = device.config.model_dump(by_alias=True, exclude_none=True)
        for key, value in template_config.items():
            if not merged.get(key) and value is not None:
                merged[key] = value
    return config_for_type(device.type, merged)


def _apply_interfaces(
    device: Device,
    templates: list[InterfaceTemplate],
    options: DeviceConfigImportOptions,
    ids: Optional[IdGenerator]
) -> list[Interface]:
    if not options.merge_interfaces:
        taken: set[str] = set()
        replaced = []
        for template in templates:
            interface_id = generate_unique_id("intf", taken, ids)
            taken.add(interface_id)
            replaced.append(template.to_interface(interface_id))
        return replaced

    by_name = {t.name: t for t in templates}
    merged = []
    for intf in device.interfaces:
        template = by_name.get(intf.name)
        if template is not None and options.overwrite_existing:
            # Identity and wiring survive the overwrite
            intf = Interface.model_validate({
                **intf.model_dump(),
                **template.model_dump(exclude_unset=True),
                "id": intf.id,
                "connected_to": intf.connected_to,
            })
        merged.append(intf)

    existing_names = {intf.name for intf in device.interfaces}
    taken = {intf.id for intf in device.interfaces}
    for template in templates:
        if template.name in existing_names:
            continue
        interface_id = generate_unique_id("intf", taken, ids)
        taken.add(interface_id)
        merged.append(template.to_interface(interface_id))
    return merged


def import_device_config(
    devices: list[Device],
    template: DeviceConfigTemplate,
    options: Optional[DeviceConfigImportOptions] = None,
    selected_ids: Optional[set[str]] = None,
    ids: Optional[IdGenerator] = None
) -> list[Device]:
    """
    Apply a template to matching devices.

    Devices whose type has no template entry, or which the import mode
    excludes, are returned unchanged (same object).

    Args:
        devices: Current devices
        template: Parsed template
        options: Import mode and merge behavior
        selected_ids: Devices targeted by mode "selected"
        ids: Id source for new interfaces

    Returns:
        Replacement device list
    """
    options = options or DeviceConfigImportOptions()
    if template.version != TEMPLATE_VERSION:
        logger.warning("Template version %s may not be fully compatible", template.version)

    updated = []
    for device in devices:
        type_config = template.for_type(device.type)
        if type_config is None or not _should_import(device, options, selected_ids):
            updated.append(device)
            continue

        changes: dict[str, Any] = {}
        if type_config.config is not None:
            changes["config"] = _apply_config(device, type_config.config, options.overwrite_existing)
        if type_config.interfaces is not None:
            changes["interfaces"] = _apply_interfaces(device, type_config.interfaces, options, ids)

        updated.append(device.model_copy(update=changes) if changes else device)

    return updated
