"""Home Assistant device discovery document for one reporting agent.

A single retained message on ``homeassistant/device/<namespace>/<id>/config``
describes the whole device: metadata, availability and every entity
("component") HA should create for it. Components read their values from the
status/state/sensors topics with the templates below.
"""
from __future__ import annotations

import re
from typing import Any, Dict

from .schemas import DeviceReport
from .topics import TopicSet

BRIDGE_NAME = "ha-agent-hook"
BRIDGE_VERSION = "1.0.0"
# bump whenever COMPONENTS changes shape, HA sees it in the origin block
CATALOG_VERSION = 2

DEVICE_MODEL = "PC Agent"
DEVICE_MANUFACTURER = "HA Agent Hook"

PAYLOAD_ONLINE = "online"
PAYLOAD_OFFLINE = "offline"

# key -> component definition; "topic" names the TopicSet field to read from
COMPONENTS: Dict[str, Dict[str, Any]] = {
    "pc_running": {
        "platform": "binary_sensor", "name": "Running", "topic": "status",
        "device_class": "running",
        "payload_on": PAYLOAD_ONLINE, "payload_off": PAYLOAD_OFFLINE,
    },
    "users_logged_in": {
        "platform": "binary_sensor", "name": "Users Logged In", "topic": "state",
        "device_class": "occupancy",
        "value_template": "{{ value_json.users_logged_in }}",
        "payload_on": True, "payload_off": False,
    },
    "users_count": {
        "platform": "sensor", "name": "Users Count", "topic": "state",
        "icon": "mdi:account-group", "state_class": "measurement",
        "value_template": "{{ value_json.logged_users_count }}",
    },
    "users_list": {
        "platform": "sensor", "name": "Logged Users", "topic": "state",
        "icon": "mdi:account-details",
        "value_template": "{{ value_json.logged_users }}",
    },
    "cpu_percent": {
        "platform": "sensor", "name": "CPU Usage", "topic": "sensors",
        "icon": "mdi:cpu-64-bit", "unit_of_measurement": "%", "state_class": "measurement",
        "value_template": "{{ value_json.cpu_percent }}",
    },
    "ram_percent": {
        "platform": "sensor", "name": "Memory Usage", "topic": "sensors",
        "icon": "mdi:memory", "unit_of_measurement": "%", "state_class": "measurement",
        "value_template": "{{ value_json.ram_percent }}",
    },
    "disk_percent": {
        "platform": "sensor", "name": "Disk Usage", "topic": "sensors",
        "icon": "mdi:harddisk", "unit_of_measurement": "%", "state_class": "measurement",
        "value_template": "{{ value_json.disk_percent }}",
    },
    "session_locked": {
        "platform": "binary_sensor", "name": "Session Locked", "topic": "state",
        "icon": "mdi:monitor-lock",
        "value_template": "{{ value_json.session_locked }}",
        "payload_on": True, "payload_off": False,
    },
}

_WS_RE = re.compile(r"\s+")


def slugify(hostname: str) -> str:
    """Lower-case ``hostname`` and collapse whitespace runs to one underscore."""
    return _WS_RE.sub("_", hostname.strip().lower())


def device_block(report: DeviceReport, sw_version: str = BRIDGE_VERSION) -> Dict[str, Any]:
    connections = [["mac", report.mac_address]] if report.mac_address else []
    return {
        "identifiers": [f"agent_{report.device_id}"],
        "name": report.hostname or report.device_id,
        "model": DEVICE_MODEL,
        "manufacturer": DEVICE_MANUFACTURER,
        "sw_version": sw_version,
        "connections": connections,
    }


def build_discovery(
    report: DeviceReport,
    topics: TopicSet,
    *,
    origin_name: str = BRIDGE_NAME,
    sw_version: str = BRIDGE_VERSION,
) -> Dict[str, Any]:
    """Build the full discovery document for ``report``.

    Pure: no I/O and nothing raised for a report carrying a device id. A
    missing hostname falls back to the device id for display name and slug.
    """
    device_id = report.device_id
    slug = slugify(report.hostname or device_id)

    components: Dict[str, Dict[str, Any]] = {}
    for key, definition in COMPONENTS.items():
        cmp = {k: v for k, v in definition.items() if k != "topic"}
        cmp["unique_id"] = f"agent_{device_id}_{key}"
        cmp["object_id"] = f"{slug}_{key}"
        cmp["state_topic"] = getattr(topics, definition["topic"])
        components[key] = cmp

    return {
        "device": device_block(report, sw_version),
        "origin": {
            "name": origin_name,
            "sw_version": f"{sw_version}+catalog.{CATALOG_VERSION}",
        },
        "availability": [{
            "topic": topics.status,
            "payload_available": PAYLOAD_ONLINE,
            "payload_not_available": PAYLOAD_OFFLINE,
        }],
        "availability_mode": "all",
        "components": components,
    }
