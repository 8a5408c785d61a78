import pytest

from robot_sandbox.config import load_config
from robot_sandbox.state import SimulationState


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def state(config):
    return SimulationState(config)
