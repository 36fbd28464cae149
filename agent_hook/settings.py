from pydantic import BaseModel
import os
import time

class Settings(BaseModel):
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HTTP_PORT", "3000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    mqtt_host: str = os.getenv("MQTT_HOST", "localhost")
    mqtt_port: int = int(os.getenv("MQTT_PORT", "1883"))
    mqtt_username: str | None = os.getenv("MQTT_USERNAME") or None
    mqtt_password: str | None = os.getenv("MQTT_PASSWORD") or None
    mqtt_client_id: str = os.getenv("MQTT_CLIENT_ID") or f"ha-agent-hook-{int(time.time())}"
    mqtt_qos: int = int(os.getenv("MQTT_QOS", "1"))
    mqtt_topic_base: str = os.getenv("MQTT_TOPIC_BASE", "ha-agent")

    discovery_prefix: str = os.getenv("DISCOVERY_PREFIX", "homeassistant")
    # 6h between re-announcements, 15s of silence before a device goes offline
    discovery_interval_seconds: float = float(os.getenv("DISCOVERY_INTERVAL_SECONDS", "21600"))
    liveness_timeout_seconds: float = float(os.getenv("LIVENESS_TIMEOUT_SECONDS", "15"))

settings = Settings()
