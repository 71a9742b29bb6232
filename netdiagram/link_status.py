"""
Interface compatibility and link status.

Pure predicates used by the store (to derive interface status and connection
style) and by callers for read-only display ("why is this link down").
"""

import re
from typing import Optional

from .models import (
    CamelModel,
    ConnectionStyle,
    Interface,
    InterfaceStatus,
    LINK_DOWN_COLOR,
    LINK_UP_COLOR,
    StrokeStyle,
)


# Links between interfaces whose speeds differ by more than this factor are down
MAX_SPEED_RATIO = 10

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class LinkStatus(CamelModel):
    """Up/down determination for a connection, with a human-readable reason."""
    is_up: bool
    reason: Optional[str] = None


def parse_speed(speed: Optional[str]) -> Optional[int]:
    """Leading integer of a speed string ("1000", "100full"), or None."""
    if not speed:
        return None
    match = _LEADING_INT.match(speed)
    if match is None:
        return None
    return int(match.group(1))


def _speed_ratio_exceeded(a: Interface, b: Interface) -> bool:
    speed_a = parse_speed(a.speed)
    speed_b = parse_speed(b.speed)
    if speed_a is None or speed_b is None:
        return False
    low, high = min(speed_a, speed_b), max(speed_a, speed_b)
    if low <= 0:
        # 0 against 0 is treated as equal speeds
        return high != low
    return high / low > MAX_SPEED_RATIO


def _is_admin_down(intf: Interface) -> bool:
    return intf.status == InterfaceStatus.ADMIN_DOWN


def can_interface_connect(a: Optional[Interface], b: Optional[Interface]) -> bool:
    """
    Check whether two interfaces can form a link.

    False if either is missing or admin-down, if the media types differ, or if
    both declare a speed and the faster is more than 10x the slower.
    """
    if a is None or b is None:
        return False
    if _is_admin_down(a) or _is_admin_down(b):
        return False
    if a.type != b.type:
        return False
    if _speed_ratio_exceeded(a, b):
        return False
    return True


def determine_interface_status(
    current: Interface,
    peer: Optional[Interface] = None,
    is_selected: bool = True
) -> str:
    """
    Derive an interface's status from its peer.

    admin-down is returned unchanged; otherwise the interface is up only when
    it is selected on a connection and can connect to a live peer.
    """
    if _is_admin_down(current):
        return InterfaceStatus.ADMIN_DOWN.value
    if not is_selected or peer is None or _is_admin_down(peer):
        return InterfaceStatus.DOWN.value
    if can_interface_connect(current, peer):
        return InterfaceStatus.UP.value
    return InterfaceStatus.DOWN.value


def determine_link_status(
    source: Optional[Interface],
    target: Optional[Interface]
) -> LinkStatus:
    """
    Determine the link status between two interfaces.

    The reason text is shown to users verbatim and must stay stable.
    """
    if source is None or target is None:
        return LinkStatus(is_up=False, reason="Interface not found")

    if _is_admin_down(source) or _is_admin_down(target):
        return LinkStatus(is_up=False, reason="Interface administratively down")

    if source.type != target.type:
        return LinkStatus(
            is_up=False,
            reason=f"Type mismatch: {source.type} <-> {target.type}"
        )

    if _speed_ratio_exceeded(source, target):
        return LinkStatus(
            is_up=False,
            reason=f"Speed mismatch: {source.speed}Mbps <-> {target.speed}Mbps"
        )

    return LinkStatus(is_up=True)


def connection_style_from_link_status(
    status: LinkStatus,
    current_style: Optional[ConnectionStyle] = None
) -> ConnectionStyle:
    """
    Build the connection style encoding a link status.

    Up is solid green and animated; down is dashed red and static. The stroke
    width is carried over from the current style.
    """
    width = current_style.stroke_width if current_style and current_style.stroke_width else 2
    if status.is_up:
        return ConnectionStyle(
            stroke_style=StrokeStyle.SOLID,
            stroke_color=LINK_UP_COLOR,
            stroke_width=width,
            animated=True,
        )
    return ConnectionStyle(
        stroke_style=StrokeStyle.DASHED,
        stroke_color=LINK_DOWN_COLOR,
        stroke_width=width,
        animated=False,
    )


def normalize_speed(speed: Optional[str]) -> Optional[float]:
    """
    Normalize a speed string to Mbps.

    "10G" -> 10000, "100M" -> 100, "512k" -> 0.512, "1000" -> 1000.
    """
    if not speed:
        return None
    match = re.match(r"^\s*([+-]?\d+(?:\.\d+)?)", speed)
    if match is None:
        return None
    value = float(match.group(1))

    unit = speed[match.end():].lower()
    if "g" in unit:
        return value * 1000
    if "k" in unit:
        return value / 1000
    return value


def link_status_message(status: LinkStatus) -> str:
    """Detailed message for display."""
    if status.is_up:
        return "Link is up and operational"
    return status.reason or "Link is down"
