import asyncio
import random

import pytest
import spacy

from monolog.errors import ModelLoadError
from monolog.memory.store import SQLiteStorage


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    def __init__(self, *, reply="たしかに", delay=0.0, fail_load=False, error=None):
        self.reply = reply
        self.delay = delay
        self.fail_load = fail_load
        self.error = error
        self.prompts = []
        self.unloaded = False

    async def reload(self):
        if self.fail_load:
            raise ModelLoadError("model file missing")

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def unload(self):
        self.unloaded = True


class FakeFactory:
    """``create_engine`` stand-in that counts constructions."""

    def __init__(self, *, load_delay=0.0, fail_loads=0, **handle_kwargs):
        self.load_delay = load_delay
        self.fail_loads = fail_loads
        self.handle_kwargs = handle_kwargs
        self.calls = 0
        self.handles = []

    async def __call__(self, model_id):
        self.calls += 1
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        handle = FakeHandle(fail_load=self.calls <= self.fail_loads, **self.handle_kwargs)
        self.handles.append(handle)
        return handle


@pytest.fixture
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def run(event_loop):
    return event_loop.run_until_complete


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture(scope="session")
def blank_nlp():
    return spacy.blank("xx")


@pytest.fixture
def sqlite_storage(tmp_path, run):
    storage = SQLiteStorage(tmp_path / "monolog.db")
    yield storage
    run(storage.close())


@pytest.fixture
def make_factory():
    return FakeFactory
