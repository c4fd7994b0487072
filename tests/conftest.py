"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for control_plane_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from control_plane_mock import FakeClock, MockControlPlane, MockGateway  # noqa: E402

from hook_operator.config import Config  # noqa: E402
from hook_operator.controller import LifecycleController  # noqa: E402
from hook_operator.models import LifecycleHookSpec, LifecycleTransition  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def plane() -> MockControlPlane:
    return MockControlPlane()


@pytest.fixture
def gateway(plane: MockControlPlane, clock: FakeClock) -> MockGateway:
    return MockGateway(plane, clock=clock)


@pytest.fixture
def config() -> Config:
    return Config(
        create_timeout_seconds=300,
        delete_timeout_seconds=120,
        poll_interval_seconds=5,
    )


@pytest.fixture
def controller(gateway: MockGateway, config: Config, clock: FakeClock) -> LifecycleController:
    return LifecycleController(gateway, config, clock=clock.monotonic, sleep=clock.sleep)


@pytest.fixture
def desired() -> LifecycleHookSpec:
    """Minimal desired state: only the required fields."""
    return LifecycleHookSpec(
        scaling_group_id="asg-1",
        lifecycle_transition=LifecycleTransition.SCALE_OUT,
    )
