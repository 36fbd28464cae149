"""Topic naming for a single reporting device.

Every device owns four topics. They are rebuilt from the device id on each use
and must stay byte-for-byte stable, otherwise retained values end up on a topic
nobody subscribes to anymore.
"""
from dataclasses import dataclass

DEFAULT_NAMESPACE = "ha-agent"
DEFAULT_DISCOVERY_PREFIX = "homeassistant"


@dataclass(frozen=True)
class TopicSet:
    status: str     # availability, "online"/"offline", retained
    state: str      # user/session payload, not retained
    sensors: str    # raw sensor map, not retained
    discovery: str  # HA device discovery document, retained


def topics_for(
    device_id: str,
    namespace: str = DEFAULT_NAMESPACE,
    discovery_prefix: str = DEFAULT_DISCOVERY_PREFIX,
) -> TopicSet:
    if not device_id:
        raise ValueError("device_id must be a non-empty string")
    base = f"{namespace}/{device_id}"
    return TopicSet(
        status=f"{base}/status",
        state=f"{base}/state",
        sensors=f"{base}/sensors",
        discovery=f"{discovery_prefix}/device/{namespace}/{device_id}/config",
    )
