import sys
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from taskview.domain.record import TaskRecord  # noqa: E402
from taskview.events.bus import EventBus  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def event_bus():
    bus = EventBus()
    yield bus
    bus.shutdown()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_record():
    counter = {"next": 1}

    def _make(**fields) -> TaskRecord:
        if "id" not in fields:
            fields["id"] = counter["next"]
            counter["next"] += 1
        fields.setdefault("description", f"task {fields['id']}")
        return TaskRecord(**fields)

    return _make


@pytest.fixture
def sample_records():
    today = date.today()
    return [
        TaskRecord(id=1, description="Write report", project="work", priority="H",
                   urgency=9.5, due=today, tags=frozenset({"urgent", "writing"})),
        TaskRecord(id=2, description="Buy milk", project="home", urgency=2.0),
        TaskRecord(id=3, description="Fix bug", project="work.backend", priority="M",
                   urgency=6.1, tags=frozenset({"code"})),
        TaskRecord(id=4, description="Old chore", status="completed", project="home",
                   urgency=0.5),
        TaskRecord(id=5, description="Plan trip", priority="L", urgency=4.0,
                   tags=frozenset({"urgent"})),
    ]


def collect(bus: EventBus, event_type):
    """Subscribe a list-appending handler and return the list."""
    received = []
    bus.subscribe(event_type, received.append)
    return received
