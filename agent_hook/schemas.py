import logging
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Any

log = logging.getLogger(__name__)

class DeviceReport(BaseModel):
    # agents add fields over time; anything we don't map is dropped
    model_config = ConfigDict(extra="ignore")

    # used verbatim in topic names, so no MQTT separators or wildcards
    device_id: str = Field(min_length=1, pattern=r"^[^/#+\s]+$")
    hostname: str | None = None
    mac_address: str | None = None
    status: str | None = "normal"  # normal | online-ping | error

    users_logged_in: bool | None = None
    logged_users_count: int | None = None
    logged_users: list[str] | str | None = None
    session_locked: bool | None = None

    sensors: dict[str, Any] | None = None
    error: Any = None

    # only device_id can reject a report; an odd value elsewhere is published as null
    @field_validator(
        "hostname", "mac_address", "status", "users_logged_in", "logged_users_count",
        "logged_users", "session_locked", "sensors",
        mode="wrap",
    )
    @classmethod
    def _null_if_unusable(cls, value, handler, info):
        try:
            return handler(value)
        except ValidationError:
            log.debug("dropping unusable %s=%r", info.field_name, value)
            return None

class ReportAccepted(BaseModel):
    status: str = "accepted"
    device_id: str
    kind: str
    published: list[str]

class DeviceOut(BaseModel):
    device_id: str
    status: str
    last_seen: float
    last_discovery: float | None = None
