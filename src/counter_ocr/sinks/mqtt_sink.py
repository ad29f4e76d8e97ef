"""
MQTT Reading Sink
=================

Publishes accepted readings to an MQTT broker.

Topics:
    <topic>/LWT     "Online" on connect, "Offline" as last will (retained)
    <topic>/STATE   JSON reading (retained)

Example payload:
    {"timestamp": 1700000000.0, "time": "2023-11-14T23:13:20", "value": 12345.6}
"""

import json
import logging
from typing import Optional

import paho.mqtt.client as mqtt

from counter_ocr.config import MqttConfig
from counter_ocr.models.reading import Reading


logger = logging.getLogger(__name__)


ONLINE = "Online"
OFFLINE = "Offline"


class MqttReadingSink:
    """
    Reading sink backed by a paho-mqtt client.

    The network loop runs in paho's background thread. Readings produced
    while disconnected are dropped with a warning.
    """

    def __init__(self, config: MqttConfig, client: Optional[mqtt.Client] = None) -> None:
        """
        Initialize MQTT sink.

        Args:
            config: Broker and topic settings
            client: Pre-built client (tests); created from config if None
        """
        self.config = config
        self.lwt_topic = f"{config.topic}/LWT"
        self.state_topic = f"{config.topic}/STATE"
        self.connected = False
        self.published = 0

        self.client = client or mqtt.Client(
            client_id=config.client_id,
            clean_session=True,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        if config.username:
            self.client.username_pw_set(config.username, config.password)
        self.client.will_set(self.lwt_topic, OFFLINE, retain=True)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error(f"MQTT connection refused: {reason_code}")
            return
        self.connected = True
        logger.info(f"MQTT connected rc={reason_code}")
        client.publish(self.lwt_topic, ONLINE, retain=True)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None) -> None:
        self.connected = False
        logger.warning(f"MQTT disconnected rc={reason_code}")

    def connect(self) -> None:
        """
        Start connecting to the broker in the background.

        The network loop retries until the broker is reachable, so an
        unavailable broker never blocks or fails the caller.
        """
        logger.info(f"Connecting to MQTT broker {self.config.host}:{self.config.port}")
        self.client.connect_async(
            self.config.host, self.config.port, keepalive=self.config.keepalive
        )
        self.client.loop_start()

    def write(self, reading: Reading) -> None:
        if not self.connected:
            logger.warning(f"MQTT not connected, dropping reading {reading.value}")
            return
        payload = json.dumps(reading.to_dict())
        self.client.publish(self.state_topic, payload, retain=True)
        self.published += 1

    def close(self) -> None:
        if self.connected:
            self.client.publish(self.lwt_topic, OFFLINE, retain=True)
        self.client.disconnect()
        self.client.loop_stop()
        logger.info(f"MQTT sink closed after {self.published} readings")
