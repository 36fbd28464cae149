"""Turns one validated agent report into MQTT publishes.

Order per report: registry update, discovery document when due, availability
"online", then state/sensors for plain telemetry. The liveness sweep lives
here too since it is the other producer of availability messages.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Protocol

from .discovery import PAYLOAD_OFFLINE, PAYLOAD_ONLINE, build_discovery
from .registry import DeviceRegistry, DeviceStatus
from .schemas import DeviceReport
from .settings import Settings
from .topics import TopicSet, topics_for

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, topic: str, payload: str | bytes, retain: bool = False) -> Any:
        ...


class ReportKind(str, Enum):
    TELEMETRY = "telemetry"
    PING = "ping"
    ERROR = "error"


_PING_TAGS = {"online-ping", "online_ping", "ping"}


def classify(report: DeviceReport) -> ReportKind:
    tag = (report.status or "").strip().lower()
    if tag == "error":
        return ReportKind.ERROR
    if tag in _PING_TAGS:
        return ReportKind.PING
    return ReportKind.TELEMETRY


def state_payload(report: DeviceReport) -> dict:
    return {
        "users_logged_in": report.users_logged_in,
        "logged_users_count": report.logged_users_count,
        "logged_users": report.logged_users,
        "session_locked": report.session_locked,
    }


@dataclass
class DispatchOutcome:
    device_id: str
    kind: ReportKind
    published: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class ReportDispatcher:
    def __init__(
        self,
        registry: DeviceRegistry,
        publisher: Publisher,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.publisher = publisher
        self.settings = settings
        self.clock = clock

    def topics(self, device_id: str) -> TopicSet:
        return topics_for(
            device_id,
            namespace=self.settings.mqtt_topic_base,
            discovery_prefix=self.settings.discovery_prefix,
        )

    def _publish(self, topic: str, payload: Any, retain: bool) -> bool:
        if not isinstance(payload, (str, bytes)):
            payload = json.dumps(payload)
        try:
            result = self.publisher.publish(topic, payload, retain=retain)
        except Exception:
            logger.exception("publish to %s raised", topic)
            return False
        if result is not None and not getattr(result, "ok", True):
            logger.error(
                "publish to %s failed rc=%s: %s",
                topic, getattr(result, "rc", None), getattr(result, "error", None),
            )
            return False
        return True

    def dispatch(self, report: DeviceReport) -> DispatchOutcome:
        now = self.clock()
        device_id = report.device_id
        topics = self.topics(device_id)
        kind = classify(report)
        outcome = DispatchOutcome(device_id=device_id, kind=kind)

        def emit(name: str, topic: str, payload: Any, retain: bool) -> None:
            if self._publish(topic, payload, retain):
                outcome.published.append(name)
            else:
                outcome.failed.append(name)

        record = self.registry.record_seen(device_id, now)
        if record.previous_status is None:
            logger.info("New device %s (%s)", device_id, report.hostname)
        elif record.previous_status is DeviceStatus.OFFLINE:
            logger.info("Device %s is back online", device_id)

        if self.registry.due_for_discovery(device_id, now, self.settings.discovery_interval_seconds):
            document = build_discovery(report, topics)
            emit("discovery", topics.discovery, document, retain=True)
            # marked even if the publish failed; next try is one interval away
            self.registry.mark_discovery_published(device_id, now)
            logger.info("Discovery published for %s on %s", device_id, topics.discovery)

        emit("status", topics.status, PAYLOAD_ONLINE, retain=True)

        if kind is ReportKind.TELEMETRY:
            emit("state", topics.state, state_payload(report), retain=False)
            if report.sensors is not None:
                emit("sensors", topics.sensors, report.sensors, retain=False)
        elif kind is ReportKind.ERROR:
            logger.warning("Agent %s reported an error: %s", device_id, report.error)
        else:
            logger.debug("Ping from %s", device_id)

        return outcome

    def sweep(self, now: float | None = None) -> List[str]:
        """Publish "offline" for every device that just went silent.

        Returns the ids announced offline. A device whose report arrives
        between the registry sweep and the publish is skipped, though a report
        landing after this final check can still be followed by "offline"
        until its next report.
        """
        if now is None:
            now = self.clock()
        expired = self.registry.sweep_timeouts(now, self.settings.liveness_timeout_seconds)
        offline: List[str] = []
        for device_id in expired:
            record = self.registry.get(device_id)
            if record is None or record.status is not DeviceStatus.OFFLINE:
                # a report landed after the sweep flipped it; its "online" stands
                logger.debug("Device %s reported during sweep, offline skipped", device_id)
                continue
            logger.info(
                "Device %s offline (silent > %ss)",
                device_id, self.settings.liveness_timeout_seconds,
            )
            self._publish(self.topics(device_id).status, PAYLOAD_OFFLINE, retain=True)
            offline.append(device_id)
        return offline
