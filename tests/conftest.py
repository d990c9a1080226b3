import pytest

from outofcontext.components.output.sinks import BufferSink
from outofcontext.integrations.toy import make_toy_runtime

from helpers import RecordingHook


@pytest.fixture
def sink():
    return BufferSink()


@pytest.fixture
def hook():
    return RecordingHook()


@pytest.fixture
def toy_runtime():
    return make_toy_runtime()
