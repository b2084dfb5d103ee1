"""
Fixtures shared by the test modules.
"""

import pytest

from dubsync.models import Resource
from dubsync.store import MemoryStore, resource_path
from fakes import FakeSynthesizer, FakeTranscriber


@pytest.fixture
def store():
    s = MemoryStore()
    s.documents[resource_path("v")] = Resource(id="v", file_url="v.mp4").to_document()
    return s


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()
