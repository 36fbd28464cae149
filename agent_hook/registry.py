"""In-memory table of reporting devices.

Tracks when each device was last seen, whether it is currently considered
online and when its discovery document was last announced. A device with no
record is unknown; ``get`` returns ``None`` for it, which is not the same
thing as a record in the OFFLINE state.

Times are seconds on a monotonic clock (``time.monotonic`` in production),
so a wall-clock step cannot expire every device at once.

Records live for the lifetime of the process. Nothing is ever evicted, so
memory grows with the number of distinct device ids seen.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock
from typing import Dict, List, Optional

NEVER = 0.0


class DeviceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class DeviceRecord:
    device_id: str
    last_seen: float
    status: DeviceStatus = DeviceStatus.ONLINE
    last_discovery: float = NEVER
    # status before the most recent record_seen, None on first sight
    previous_status: Optional[DeviceStatus] = None

    @property
    def announced(self) -> bool:
        return self.last_discovery != NEVER


class DeviceRegistry:
    """Thread-safe device liveness table.

    Every public method takes the lock for its whole read-modify-write and
    hands back copies, so callers never hold a reference into the table.
    """

    def __init__(self) -> None:
        self._records: Dict[str, DeviceRecord] = {}
        self._lock = Lock()

    def record_seen(self, device_id: str, now: float) -> DeviceRecord:
        with self._lock:
            rec = self._records.get(device_id)
            if rec is None:
                rec = DeviceRecord(device_id=device_id, last_seen=now)
                self._records[device_id] = rec
            else:
                rec.previous_status = rec.status
                rec.status = DeviceStatus.ONLINE
                rec.last_seen = now
            return replace(rec)

    def due_for_discovery(self, device_id: str, now: float, interval: float) -> bool:
        with self._lock:
            rec = self._records.get(device_id)
            if rec is None or not rec.announced:
                return True
            return now - rec.last_discovery >= interval

    def mark_discovery_published(self, device_id: str, now: float) -> None:
        with self._lock:
            rec = self._records.get(device_id)
            if rec is None:
                # published before ever being seen; keep the announcement time anyway
                rec = DeviceRecord(device_id=device_id, last_seen=now)
                self._records[device_id] = rec
            rec.last_discovery = now

    def sweep_timeouts(self, now: float, timeout: float) -> List[str]:
        """Flip silent ONLINE devices to OFFLINE.

        Returns the ids that changed state in this sweep only; devices that
        were already OFFLINE are never reported again.
        """
        expired: List[str] = []
        with self._lock:
            for device_id, rec in self._records.items():
                if rec.status is DeviceStatus.ONLINE and now - rec.last_seen > timeout:
                    rec.status = DeviceStatus.OFFLINE
                    expired.append(device_id)
        return expired

    def get(self, device_id: str) -> Optional[DeviceRecord]:
        with self._lock:
            rec = self._records.get(device_id)
            return replace(rec) if rec is not None else None

    def snapshot(self) -> List[DeviceRecord]:
        with self._lock:
            return [replace(rec) for rec in self._records.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
