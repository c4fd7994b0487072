"""In-memory control plane for lifecycle hook testing.

Provides a mock implementation of the lifecycle hook API so that the
controller can be exercised without network access.

Key Features:
- In-memory hook state with control plane computed defaults
- Error injection (throttling, fatal errors) per operation
- Asynchronous deletion (hook stays visible for a number of reads)
- Fake monotonic clock so retry and polling budgets run instantly

Usage:
    from control_plane_mock import FakeClock, MockControlPlane, MockGateway

    plane = MockControlPlane()
    clock = FakeClock()
    controller = LifecycleController(
        MockGateway(plane, clock=clock), clock=clock.monotonic, sleep=clock.sleep
    )
"""

from .clock import FakeClock
from .errors import FakeResponse, fatal_error, not_found_error, throttling_error
from .gateway import MockGateway, OutOfRangeAfterCreateGateway
from .plane import MockControlPlane

__all__ = [
    "FakeClock",
    "FakeResponse",
    "MockControlPlane",
    "MockGateway",
    "OutOfRangeAfterCreateGateway",
    "fatal_error",
    "not_found_error",
    "throttling_error",
]
