"""
Topology validation - Check a topology for integrity problems.

The store keeps these invariants on every transition; validation reports
where a topology assembled elsewhere (an imported file, a hand-built state)
breaks them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .link_status import connection_style_from_link_status
from .models import VLAN_MAX, VLAN_MIN, Connection, Device, InterfaceStatus
from .propagation import connection_link_status


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken invariant, must be fixed
    WARNING = "warning"  # Derived state out of date, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a topology."""
    severity: IssueSeverity
    message: str
    device_id: Optional[str] = None
    connection_id: Optional[str] = None
    interface_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.device_id:
            result["deviceId"] = self.device_id
        if self.connection_id:
            result["connectionId"] = self.connection_id
        if self.interface_id:
            result["interfaceId"] = self.interface_id
        return result


def _check_connection_refs(
    devices_by_id: dict[str, Device],
    conn: Connection
) -> list[ValidationIssue]:
    issues = []
    for side, device_id, interface_id in (
        ("source", conn.source, conn.source_interface_id),
        ("target", conn.target, conn.target_interface_id),
    ):
        device = devices_by_id.get(device_id)
        if device is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references non-existent {side} device: {device_id}",
                connection_id=conn.id
            ))
        elif interface_id and device.get_interface(interface_id) is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references non-existent {side} interface: {interface_id}",
                connection_id=conn.id,
                device_id=device_id,
                interface_id=interface_id
            ))
    return issues


def validate_topology(
    devices: list[Device],
    connections: list[Connection]
) -> list[ValidationIssue]:
    """
    Validate a topology and return a list of issues.

    Checks for:
    - Connections to missing devices or interfaces - ERROR
    - Duplicate interface ids within a device - ERROR
    - VLANs outside 1-4094 - ERROR
    - Connection style disagreeing with link status - WARNING
    - Interfaces up without any connection - WARNING
    - Self-referencing connections - WARNING
    - Devices without connections - INFO
    - Empty topology - INFO

    Args:
        devices: Devices to check
        connections: Connections to check

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    if not devices:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Topology has no devices"
        ))
        if not connections:
            return issues

    devices_by_id = {d.id: d for d in devices}

    for device in devices:
        seen: set[str] = set()
        for intf in device.interfaces:
            if intf.id in seen:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Duplicate interface id {intf.id}",
                    device_id=device.id,
                    interface_id=intf.id
                ))
            seen.add(intf.id)

            for vlan in intf.vlans or []:
                if not VLAN_MIN <= vlan <= VLAN_MAX:
                    issues.append(ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        message=f"VLAN {vlan} out of range ({VLAN_MIN}-{VLAN_MAX})",
                        device_id=device.id,
                        interface_id=intf.id
                    ))

    referenced: set[tuple[str, str]] = set()
    connected_devices: set[str] = set()
    for conn in connections:
        connected_devices.update((conn.source, conn.target))
        ref_issues = _check_connection_refs(devices_by_id, conn)
        issues.extend(ref_issues)

        if conn.source == conn.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing connection (device links to itself)",
                connection_id=conn.id,
                device_id=conn.source
            ))

        if conn.source_interface_id and conn.target_interface_id:
            referenced.add((conn.source, conn.source_interface_id))
            referenced.add((conn.target, conn.target_interface_id))
            if ref_issues:
                continue

            expected = connection_style_from_link_status(
                connection_link_status(devices, conn), conn.style
            )
            style = conn.style
            if style is None or (
                style.stroke_style != expected.stroke_style
                or style.stroke_color != expected.stroke_color
                or style.animated != expected.animated
            ):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message="Connection style does not match its link status",
                    connection_id=conn.id
                ))

    for device in devices:
        for intf in device.interfaces:
            if intf.status == InterfaceStatus.UP and (device.id, intf.id) not in referenced:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Interface {intf.name or intf.id} is up but not connected",
                    device_id=device.id,
                    interface_id=intf.id
                ))

    isolated = [d for d in devices if d.id not in connected_devices]
    if isolated:
        names = [f"{d.name} ({d.id})" for d in isolated]
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message=f"Devices without connections: {', '.join(names)}"
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
