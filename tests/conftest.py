import pytest

from netdiagram.ids import SequentialIdGenerator
from netdiagram.store import TopologyState, add_connection, add_device

from tests.helpers import connection_request


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def state():
    return TopologyState(id="diagram-test", name="Test")


@pytest.fixture
def router_switch(state, ids):
    """Router R and switch S with their default interfaces, unconnected."""
    state = add_device(
        state, {"type": "router", "name": "R", "position": {"x": 0, "y": 0}}, ids=ids
    )
    return add_device(
        state, {"type": "switch", "name": "S", "position": {"x": 200, "y": 0}}, ids=ids
    )


@pytest.fixture
def linked(router_switch, ids):
    """R gi0/1 connected to S gi1/0/2."""
    request = connection_request(router_switch, ("R", "gi0/1"), ("S", "gi1/0/2"))
    return add_connection(router_switch, request, ids=ids)
