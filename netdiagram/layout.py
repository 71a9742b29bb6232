"""
Layout algorithms for network devices.

Provides four independent strategies:
- Hierarchical: fixed layers by device type (cloud > router > firewall > switch > hosts)
- Force: force-directed layout (simplified Fruchterman-Reingold with cooling)
- Circular: devices evenly spaced around a circle
- Grid: row-major square-ish grid

All layout functions return repositioned copies; input devices are never
modified.
"""

import logging
import math
import random
from typing import Callable, Literal, Optional

from .exceptions import UnknownLayoutAlgorithmError
from .models import CamelModel, Connection, Device, DeviceType, Position


logger = logging.getLogger(__name__)

# Default layout parameters
DEFAULT_SPACING = 150
MIN_SPACING = 50
MAX_SPACING = 500
DEFAULT_ITERATIONS = 50
MAX_ITERATIONS = 1000
SEED_RANGE = 200  # unplaced devices are seeded within [-200, 200]^2

HIERARCHY_LAYERS: list[tuple[str, ...]] = [
    (DeviceType.CLOUD.value,),
    (DeviceType.ROUTER.value,),
    (DeviceType.FIREWALL.value,),
    (DeviceType.SWITCH.value, DeviceType.LOAD_BALANCER.value),
    (DeviceType.SERVER.value, DeviceType.WORKSTATION.value, DeviceType.ACCESS_POINT.value),
]


class LayoutOptions(CamelModel):
    """Options shared by all layout algorithms."""
    algorithm: str = "hierarchical"
    spacing: float = DEFAULT_SPACING
    direction: Literal["horizontal", "vertical"] = "vertical"
    center_x: Optional[float] = None
    center_y: Optional[float] = None
    iterations: int = DEFAULT_ITERATIONS  # force layout only
    seed: Optional[int] = None  # force layout only


class BoundingBox(CamelModel):
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


class LayoutResult(CamelModel):
    devices: list[Device]
    bounding_box: BoundingBox


def bounding_box(devices: list[Device]) -> BoundingBox:
    """Bounding box over device positions; a zero box for no devices."""
    if not devices:
        return BoundingBox()
    xs = [d.position.x for d in devices]
    ys = [d.position.y for d in devices]
    return BoundingBox(min_x=min(xs), min_y=min(ys), max_x=max(xs), max_y=max(ys))


def _moved(device: Device, x: float, y: float) -> Device:
    return device.model_copy(update={"position": Position(x=x, y=y)})


def _result(devices: list[Device]) -> LayoutResult:
    return LayoutResult(devices=devices, bounding_box=bounding_box(devices))


def hierarchical_layout(
    devices: list[Device],
    connections: list[Connection],
    options: LayoutOptions
) -> LayoutResult:
    """
    Arrange devices in layers by type.

    Each layer is spread along one axis, centered on 0; the layer index times
    `spacing` gives the other axis. Empty layers are skipped. If a center is
    requested, the whole result is translated so its bounding box is centered
    there.

    Args:
        devices: Devices to arrange
        connections: Unused (layers come from device types)
        options: spacing, direction, optional center_x/center_y

    Returns:
        LayoutResult with repositioned copies, in layer order
    """
    spacing = options.spacing
    horizontal = options.direction == "horizontal"

    placed: list[Device] = []
    for layer_index, layer_types in enumerate(HIERARCHY_LAYERS):
        layer_devices = [d for d in devices if d.type in layer_types]
        if not layer_devices:
            continue

        total = (len(layer_devices) - 1) * spacing
        start = -total / 2
        for i, device in enumerate(layer_devices):
            along = start + i * spacing
            across = layer_index * spacing
            if horizontal:
                placed.append(_moved(device, across, along))
            else:
                placed.append(_moved(device, along, across))

    if options.center_x is not None or options.center_y is not None:
        box = bounding_box(placed)
        offset_x = 0.0
        offset_y = 0.0
        if options.center_x is not None:
            offset_x = options.center_x - (box.min_x + box.max_x) / 2
        if options.center_y is not None:
            offset_y = options.center_y - (box.min_y + box.max_y) / 2
        placed = [
            _moved(d, d.position.x + offset_x, d.position.y + offset_y)
            for d in placed
        ]

    return _result(placed)


def _has_valid_position(device: Device) -> bool:
    return math.isfinite(device.position.x) and math.isfinite(device.position.y)


def force_directed_layout(
    devices: list[Device],
    connections: list[Connection],
    options: LayoutOptions,
    rng: Optional[random.Random] = None
) -> LayoutResult:
    """
    Arrange devices using a force-directed simulation.

    Simulates:
    - Repulsion between every pair: spacing^2 / distance
    - Attraction along connections: distance^2 / spacing
    - Per-iteration movement capped by a temperature cooling linearly from
      spacing/4 to 0

    Args:
        devices: Devices to arrange
        connections: Connected devices attract
        options: spacing, iterations (capped at 1000), seed
        rng: Random source for seeding unplaced and coincident devices

    Returns:
        LayoutResult with repositioned copies
    """
    rng = rng or random.Random(options.seed)
    k = options.spacing
    iterations = max(0, min(options.iterations, MAX_ITERATIONS))
    temperature = k / 4

    positions: dict[str, list[float]] = {}
    for device in devices:
        if _has_valid_position(device):
            positions[device.id] = [device.position.x, device.position.y]
        else:
            positions[device.id] = [
                rng.uniform(-SEED_RANGE, SEED_RANGE),
                rng.uniform(-SEED_RANGE, SEED_RANGE),
            ]

    ids = list(positions)
    edges = [
        (c.source, c.target) for c in connections
        if c.source in positions and c.target in positions and c.source != c.target
    ]

    for iteration in range(iterations):
        forces: dict[str, list[float]] = {i: [0.0, 0.0] for i in ids}

        # Repulsion between all pairs
        for a_index, a in enumerate(ids):
            for b in ids[a_index + 1:]:
                dx = positions[a][0] - positions[b][0]
                dy = positions[a][1] - positions[b][1]
                distance = math.hypot(dx, dy)
                if distance < 1e-9:
                    # Coincident devices: push apart in a random direction
                    angle = rng.uniform(0, 2 * math.pi)
                    dx, dy, distance = math.cos(angle), math.sin(angle), 1.0

                force = (k * k) / distance
                fx = dx / distance * force
                fy = dy / distance * force
                forces[a][0] += fx
                forces[a][1] += fy
                forces[b][0] -= fx
                forces[b][1] -= fy

        # Attraction along connections
        for source, target in edges:
            dx = positions[target][0] - positions[source][0]
            dy = positions[target][1] - positions[source][1]
            distance = math.hypot(dx, dy)
            if distance < 1e-9:
                continue

            force = (distance * distance) / k
            fx = dx / distance * force
            fy = dy / distance * force
            forces[source][0] += fx
            forces[source][1] += fy
            forces[target][0] -= fx
            forces[target][1] -= fy

        # Apply forces with cooling
        current_temperature = temperature * (1 - iteration / iterations)
        for device_id in ids:
            fx, fy = forces[device_id]
            length = math.hypot(fx, fy)
            if length == 0:
                continue
            step = min(length, current_temperature)
            positions[device_id][0] += fx / length * step
            positions[device_id][1] += fy / length * step

    placed = [_moved(d, *positions[d.id]) for d in devices]
    return _result(placed)


def circular_layout(
    devices: list[Device],
    connections: list[Connection],
    options: LayoutOptions
) -> LayoutResult:
    """
    Arrange devices evenly around a circle.

    The radius is n * spacing / 2pi so the circumference fits n devices
    `spacing` apart.
    """
    center_x = options.center_x if options.center_x is not None else 0.0
    center_y = options.center_y if options.center_y is not None else 0.0
    count = len(devices)
    radius = (count * options.spacing) / (2 * math.pi)

    placed = []
    for i, device in enumerate(devices):
        angle = 2 * math.pi * i / count
        placed.append(_moved(
            device,
            center_x + radius * math.cos(angle),
            center_y + radius * math.sin(angle),
        ))
    return _result(placed)


def grid_layout(
    devices: list[Device],
    connections: list[Connection],
    options: LayoutOptions
) -> LayoutResult:
    """
    Arrange devices in a grid, row-major, centered on (center_x, center_y).

    cols = ceil(sqrt(n)), rows = ceil(n / cols), pitch = spacing.
    """
    center_x = options.center_x if options.center_x is not None else 0.0
    center_y = options.center_y if options.center_y is not None else 0.0
    spacing = options.spacing
    count = len(devices)
    if count == 0:
        return _result([])

    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)
    start_x = center_x - (cols - 1) * spacing / 2
    start_y = center_y - (rows - 1) * spacing / 2

    placed = []
    for i, device in enumerate(devices):
        row, col = divmod(i, cols)
        placed.append(_moved(device, start_x + col * spacing, start_y + row * spacing))
    return _result(placed)


LAYOUT_ALGORITHMS: dict[str, Callable[[list[Device], list[Connection], LayoutOptions], LayoutResult]] = {
    "hierarchical": hierarchical_layout,
    "force": force_directed_layout,
    "circular": circular_layout,
    "grid": grid_layout,
}


def apply_layout(
    devices: list[Device],
    connections: list[Connection],
    options: LayoutOptions
) -> LayoutResult:
    """
    Run a layout algorithm with option validation and a failure guard.

    Spacing is clamped to [50, 500]. A runtime failure inside the algorithm is
    logged and the original devices are returned unchanged.

    Raises:
        UnknownLayoutAlgorithmError: If `options.algorithm` is not recognized
    """
    algorithm = LAYOUT_ALGORITHMS.get(options.algorithm)
    if algorithm is None:
        raise UnknownLayoutAlgorithmError(f"Unknown layout algorithm: {options.algorithm}")

    if not devices:
        return LayoutResult(devices=[], bounding_box=BoundingBox())

    spacing = options.spacing or DEFAULT_SPACING
    validated = options.model_copy(
        update={"spacing": max(MIN_SPACING, min(MAX_SPACING, spacing))}
    )

    try:
        return algorithm(devices, connections, validated)
    except Exception:
        logger.exception("Layout algorithm '%s' failed", options.algorithm)
        return LayoutResult(devices=list(devices), bounding_box=bounding_box(devices))
