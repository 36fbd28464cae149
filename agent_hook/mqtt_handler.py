# agent_hook/mqtt_handler.py
import logging
from dataclasses import dataclass

import paho.mqtt.client as mqtt

from .settings import Settings, settings as default_settings

log = logging.getLogger("mqtt")

def _rc_int(rc) -> int:
    # paho 2.x hands callbacks a ReasonCode, older paths still pass an int
    value = getattr(rc, "value", rc)
    return value if isinstance(value, int) else -1

def _rc_str(rc) -> str:
    # "135:Not authorized" when paho can name the code, else the bare number
    value = getattr(rc, "value", rc)
    get_name = getattr(rc, "getName", None)
    return f"{value}:{get_name()}" if callable(get_name) else str(value)


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    rc: int = 0
    mid: int | None = None
    error: str | None = None


class MqttPublisher:
    """Fire-and-forget publisher on top of a running paho client.

    ``publish`` only queues the message with paho; delivery, retries and
    reconnects are handled by paho's network loop thread.
    """

    def __init__(self, client: mqtt.Client, qos: int = 1):
        self.client = client
        self.qos = qos

    @property
    def connected(self) -> bool:
        return self.client.is_connected()

    def publish(self, topic: str, payload: str | bytes, retain: bool = False) -> PublishResult:
        info = self.client.publish(topic, payload, qos=self.qos, retain=retain)
        # paho v2: info.rc == mqtt.MQTT_ERR_SUCCESS (0) when queued
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            return PublishResult(ok=False, rc=info.rc, mid=info.mid, error=mqtt.error_string(info.rc))
        return PublishResult(ok=True, rc=info.rc, mid=info.mid)

    def stop(self) -> None:
        try:
            self.client.disconnect()
        finally:
            self.client.loop_stop()
        log.info("[MQTT] publisher stopped")


def start_mqtt(cfg: Settings | None = None) -> MqttPublisher:
    cfg = cfg or default_settings
    client = mqtt.Client(
        client_id=cfg.mqtt_client_id,
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,  # paho 2.x
    )
    client.enable_logger(log)  # paho internal logs → our logger

    if cfg.mqtt_username and cfg.mqtt_password:
        client.username_pw_set(cfg.mqtt_username, cfg.mqtt_password)

    client.reconnect_delay_set(min_delay=1, max_delay=30)

    def on_connect(client, userdata, flags, reason_code, properties):
        rc = _rc_int(reason_code)
        if rc != mqtt.CONNACK_ACCEPTED:
            log.warning("[MQTT] Connect failed rc=%s (5=Not authorized). Retrying…", _rc_str(reason_code))
            return
        log.info("[MQTT] Connected to %s:%s", cfg.mqtt_host, cfg.mqtt_port)

    def on_disconnect(client, userdata, flags, reason_code, properties):
        log.warning("[MQTT] Disconnected rc=%s. Reconnecting…", _rc_str(reason_code))

    def on_publish(client, userdata, mid, reason_code, properties):
        rc = _rc_int(reason_code)
        if rc >= 0x80:
            log.error("[MQTT] broker rejected publish mid=%s rc=%s", mid, _rc_str(reason_code))
        else:
            log.debug("[MQTT] PUBACK mid=%s", mid)

    client.on_connect = on_connect
    client.on_disconnect = on_disconnect
    client.on_publish = on_publish

    log.info(
        "[MQTT] Bootstrapping host=%s port=%s user=%s base=%s",
        cfg.mqtt_host, cfg.mqtt_port,
        "<set>" if cfg.mqtt_username else "<none>",
        cfg.mqtt_topic_base,
    )

    # connect_async: the HTTP side must come up even while the broker is down
    client.connect_async(cfg.mqtt_host, cfg.mqtt_port, keepalive=30)
    client.loop_start()
    return MqttPublisher(client, qos=cfg.mqtt_qos)
