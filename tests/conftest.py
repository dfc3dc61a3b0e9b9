"""Shared fixtures for dubbing studio tests."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from dubbing_studio.constants import DETECTION_MODEL


def make_pcm(n_samples=2400, start=0):
    """Signed 16-bit little-endian mono PCM ramp (100ms at 24kHz by default)."""
    return np.arange(start, start + n_samples, dtype="<i2").tobytes()


def audio_response(payload):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=payload))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class FakeGemini:
    """Stand-in for genai.Client.

    Detection calls return ``characters`` as JSON, synthesis calls return
    ``pcm``. Keys in ``quota_keys`` fail with a quota error; ``error`` is
    raised for every call on any other key.
    """

    def __init__(self):
        self.characters = []
        self.pcm = make_pcm()
        self.quota_keys = set()
        self.error = None
        self.calls = []

    def __call__(self, api_key=None, **kwargs):
        client = MagicMock()
        client.models.generate_content.side_effect = (
            lambda model, contents, config: self._generate(api_key, model, contents, config)
        )
        return client

    def _generate(self, api_key, model, contents, config):
        self.calls.append(SimpleNamespace(api_key=api_key, model=model, contents=contents, config=config))
        if api_key in self.quota_keys:
            raise Exception("429 RESOURCE_EXHAUSTED. You exceeded your current quota.")
        if self.error is not None:
            raise self.error
        if model == DETECTION_MODEL:
            return SimpleNamespace(text=json.dumps(self.characters))
        return audio_response(self.pcm)

    def synthesis_calls(self):
        return [c for c in self.calls if c.model != DETECTION_MODEL]


@pytest.fixture
def fake_gemini(monkeypatch):
    """Patch the Gemini client used by the tts module."""
    fake = FakeGemini()
    monkeypatch.setattr("dubbing_studio.tts.genai.Client", fake)
    return fake


@pytest.fixture
def pcm():
    return make_pcm()


@pytest.fixture
def long_script():
    """Script well over 100 characters with several sentences."""
    return " ".join(f"Sentence number {i} is here." for i in range(20))


@pytest.fixture
def pcm_factory():
    return make_pcm


@pytest.fixture
def response_factory():
    return audio_response
