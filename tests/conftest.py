import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

# Add project root to sys.path so tests can import top-level modules like 'storage', 'scoring', 'normalize', etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from notify.notifier import RecordingNotifier  # noqa: E402
from okr_service import OKRService  # noqa: E402
from scoring.utils import DEFAULT_CONFIG  # noqa: E402
from storage.goal_store import GoalStore  # noqa: E402
from storage.retry import reset_retry_config  # noqa: E402

FROZEN_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; each reading returns the current instant."""

    def __init__(self, start=FROZEN_NOW):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    with GoalStore(clock=clock) as s:
        yield s


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(clock, notifier):
    import copy

    with OKRService(config=copy.deepcopy(DEFAULT_CONFIG), notifier=notifier, clock=clock) as svc:
        yield svc


@pytest.fixture(autouse=True)
def _reset_retry_overrides():
    yield
    reset_retry_config()
