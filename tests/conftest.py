import itertools
import random
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from payflow.api.main import create_app
from payflow.config import Settings
from payflow.events import InMemoryEventBus
from payflow.repository import InMemoryTransactionRepository
from payflow.scheduling import VirtualScheduler
from payflow.state_machine import TransactionService


class ScriptedRandom(random.Random):
    """random() walks through the given values, cycling."""

    def __init__(self, values):
        super().__init__(0)
        self._values = itertools.cycle(values)

    def random(self):
        return next(self._values)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def service(scheduler, bus):
    return TransactionService(InMemoryTransactionRepository(), clock=scheduler, publisher=bus)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_client(scheduler, sleeper, bus):
    def _make(rng=None, **overrides):
        settings = Settings(**overrides)
        app = create_app(
            settings,
            scheduler=scheduler,
            rng=rng or random.Random(1234),
            sleep=sleeper,
            publisher=bus,
        )
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
