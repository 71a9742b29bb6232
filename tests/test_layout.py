import math

import pytest

from netdiagram.exceptions import UnknownLayoutAlgorithmError
from netdiagram import layout
from netdiagram.layout import (
    LayoutOptions,
    apply_layout,
    bounding_box,
    circular_layout,
    force_directed_layout,
    grid_layout,
    hierarchical_layout,
)
from netdiagram.models import Connection, Device, Position


def devices_of(*types):
    return [
        Device(id=f"device-{i}", type=t, name=f"{t}-{i}", position=Position(x=i * 7.0, y=3.0))
        for i, t in enumerate(types)
    ]


def positions(result):
    return {d.id: (d.position.x, d.position.y) for d in result.devices}


def test_hierarchical_orders_layers_by_type():
    devices = devices_of("server", "router", "switch", "cloud", "switch")
    result = hierarchical_layout(devices, [], LayoutOptions(spacing=100))

    assert [d.type for d in result.devices] == ["cloud", "router", "switch", "switch", "server"]
    placed = positions(result)
    assert placed["device-3"] == (0, 0)        # cloud, layer 0
    assert placed["device-1"] == (0, 100)      # router, layer 1
    assert placed["device-2"] == (-50, 300)    # switches centered on 0, layer 3
    assert placed["device-4"] == (50, 300)
    assert placed["device-0"] == (0, 400)


def test_hierarchical_horizontal_swaps_axes():
    devices = devices_of("router", "switch")
    placed = positions(hierarchical_layout(devices, [], LayoutOptions(spacing=100, direction="horizontal")))
    assert placed["device-0"] == (100, 0)
    assert placed["device-1"] == (300, 0)


def test_hierarchical_centering():
    devices = devices_of("router", "switch", "switch")
    result = hierarchical_layout(devices, [], LayoutOptions(spacing=100, center_x=500, center_y=0))
    box = result.bounding_box
    assert (box.min_x + box.max_x) / 2 == pytest.approx(500)
    assert (box.min_y + box.max_y) / 2 == pytest.approx(0)


def test_circular_layout_radius():
    devices = devices_of("server", "server", "server", "server")
    result = circular_layout(devices, [], LayoutOptions(spacing=100))
    radius = 4 * 100 / (2 * math.pi)
    for device in result.devices:
        assert math.hypot(device.position.x, device.position.y) == pytest.approx(radius)
    assert result.devices[0].position.x == pytest.approx(radius)


def test_grid_layout_is_row_major_and_centered():
    devices = devices_of(*["server"] * 5)
    placed = positions(grid_layout(devices, [], LayoutOptions(spacing=100)))
    # 5 devices -> 3 columns, 2 rows
    assert placed["device-0"] == (-100, -50)
    assert placed["device-2"] == (100, -50)
    assert placed["device-3"] == (-100, 50)


def test_force_layout_is_deterministic_with_seed():
    devices = devices_of("router", "switch", "server")
    connections = [
        Connection(id="c1", source="device-0", target="device-1"),
        Connection(id="c2", source="device-1", target="device-2"),
    ]
    options = LayoutOptions(algorithm="force", seed=7, iterations=30)
    first = positions(force_directed_layout(devices, connections, options))
    second = positions(force_directed_layout(devices, connections, options))
    assert first == second
    assert first != {d.id: (d.position.x, d.position.y) for d in devices}


def test_force_layout_separates_coincident_devices():
    devices = [Device(id=f"d{i}", type="server") for i in range(2)]
    placed = positions(force_directed_layout(devices, [], LayoutOptions(seed=1, iterations=10)))
    assert placed["d0"] != placed["d1"]


def test_layout_never_mutates_input():
    devices = devices_of("router", "switch")
    before = [d.model_copy(deep=True) for d in devices]
    apply_layout(devices, [], LayoutOptions(algorithm="grid"))
    assert devices == before


def test_apply_layout_clamps_spacing():
    devices = devices_of("server", "server")
    placed = positions(apply_layout(devices, [], LayoutOptions(algorithm="grid", spacing=5000)))
    assert placed["device-1"][0] - placed["device-0"][0] == 500


def test_apply_layout_unknown_algorithm():
    with pytest.raises(UnknownLayoutAlgorithmError):
        apply_layout(devices_of("router"), [], LayoutOptions(algorithm="spiral"))


def test_apply_layout_returns_originals_when_algorithm_fails(monkeypatch, caplog):
    def broken(devices, connections, options):
        raise ZeroDivisionError("boom")

    monkeypatch.setitem(layout.LAYOUT_ALGORITHMS, "grid", broken)
    devices = devices_of("router", "switch", "server")
    result = apply_layout(devices, [], LayoutOptions(algorithm="grid"))

    assert result.devices == devices
    assert result.bounding_box == bounding_box(devices)
    assert "Layout algorithm 'grid' failed" in caplog.text


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_force_layout_reseeds_non_finite_positions(bad):
    devices = devices_of("router", "switch", "server")
    devices[1] = devices[1].model_copy(update={"position": Position(x=bad, y=bad)})
    connections = [Connection(id="c1", source="device-0", target="device-1")]

    result = force_directed_layout(devices, connections, LayoutOptions(seed=3, iterations=20))
    box = result.bounding_box

    assert all(math.isfinite(v) for v in (box.min_x, box.min_y, box.max_x, box.max_y))


def test_apply_layout_empty():
    result = apply_layout([], [], LayoutOptions())
    assert result.devices == []
    assert result.bounding_box.width == 0


def test_bounding_box():
    box = bounding_box(devices_of("router", "switch", "server"))
    assert (box.min_x, box.max_x, box.min_y, box.max_y) == (0, 14, 3, 3)
    assert box.height == 0
