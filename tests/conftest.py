from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List

import pytest

from agent_hook.dispatcher import ReportDispatcher
from agent_hook.mqtt_handler import PublishResult
from agent_hook.registry import DeviceRegistry
from agent_hook.settings import Settings


@dataclass
class Published:
    topic: str
    payload: str
    retain: bool

    def json(self):
        return json.loads(self.payload)


@dataclass
class RecordingPublisher:
    """Stands in for the MQTT transport and remembers every publish."""

    messages: List[Published] = field(default_factory=list)
    fail_topics: set = field(default_factory=set)
    stopped: bool = False

    def publish(self, topic, payload, retain=False):
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        self.messages.append(Published(topic, payload, retain))
        if topic in self.fail_topics:
            return PublishResult(ok=False, rc=4, error="The client is not currently connected.")
        return PublishResult(ok=True, mid=len(self.messages))

    def stop(self):
        self.stopped = True

    def topics(self):
        return [m.topic for m in self.messages]

    def on(self, topic):
        return [m for m in self.messages if m.topic == topic]

    def clear(self):
        self.messages.clear()


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        mqtt_topic_base="ha-agent",
        discovery_prefix="homeassistant",
        discovery_interval_seconds=6 * 3600,
        liveness_timeout_seconds=15,
    )


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def dispatcher(registry, publisher, test_settings, clock) -> ReportDispatcher:
    return ReportDispatcher(registry, publisher, test_settings, clock=clock)
