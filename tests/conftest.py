import pytest

from fakes import SleepRecorder


@pytest.fixture
def sleeper():
    return SleepRecorder()
