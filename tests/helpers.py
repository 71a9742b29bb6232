"""Lookup helpers shared by the test modules."""

from netdiagram.models import Device, Interface


def device_named(state, name: str) -> Device:
    return next(d for d in state.devices if d.name == name)


def interface_named(device: Device, name: str) -> Interface:
    return next(i for i in device.interfaces if i.name == name)


def endpoint(state, device_name: str, interface_name: str) -> tuple[str, str]:
    """(device_id, interface_id) for a device and interface looked up by name."""
    device = device_named(state, device_name)
    return device.id, interface_named(device, interface_name).id


def connection_request(state, source: tuple[str, str], target: tuple[str, str], **extra) -> dict:
    """Connection payload between two (device name, interface name) pairs."""
    source_id, source_intf = endpoint(state, *source)
    target_id, target_intf = endpoint(state, *target)
    return {
        "source": source_id,
        "target": target_id,
        "sourceInterfaceId": source_intf,
        "targetInterfaceId": target_intf,
        **extra,
    }
