import pytest

from fakes import FakeClock, FakeJobStore, RecordingView


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture()
def job_store() -> FakeJobStore:
    return FakeJobStore()
