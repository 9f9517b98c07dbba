"""MQTT message bus backed by paho-mqtt."""

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, Tuple
from urllib.parse import urlparse

import paho.mqtt.client as mqtt

from core.event_bus import EventBus
from core.message_bus import MessageBus, PublishFailure

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"tcp": 1883, "mqtt": 1883, "ssl": 8883, "mqtts": 8883}


def parse_server_url(server_url: str) -> Tuple[str, int, bool]:
    """Split a broker URL into host, port and TLS flag.

    Accepts tcp://, mqtt://, ssl:// and mqtts:// schemes, or a bare host.
    """
    if "://" not in server_url:
        server_url = f"tcp://{server_url}"

    parsed = urlparse(server_url)
    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ValueError(f"Unsupported broker URL scheme: {parsed.scheme}")
    if not parsed.hostname:
        raise ValueError(f"Broker URL has no host: {server_url}")

    port = parsed.port or DEFAULT_PORTS[scheme]
    return parsed.hostname, port, scheme in ("ssl", "mqtts")


class MqttMessageBus(MessageBus):
    """Message bus over an MQTT broker.

    paho's network loop runs in its own thread and reconnects on its own.
    Publishing never blocks the caller: while disconnected, QoS 1 and 2
    messages wait in paho's queue and QoS 0 messages in a bounded buffer.
    """

    def __init__(self, config: Dict[str, Any], event_bus: EventBus):
        """Initialize MQTT bus.

        Args:
            config: Message bus configuration dictionary.
            event_bus: Event bus that carries bus events.
        """
        self.config = config
        self.client_id = config.get('client_id', 'ledcal')
        super().__init__(event_bus, f"mqtt:{self.client_id}")

        self.server_url = config.get('server_url', 'tcp://localhost:1883')
        self.host, self.port, self.use_tls = parse_server_url(self.server_url)
        self.qos = config.get('qos', 0)
        self.keepalive = config.get('keepalive', 60)
        self.offline_buffer_size = config.get('offline_buffer_size', 100)

        self._connected = False
        self._has_connected = False
        self._offline_buffer: Deque[Tuple[str, bytes]] = deque()
        self._buffer_lock = threading.Lock()

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=config.get('clean_session', False),
        )

        username = config.get('username')
        if username:
            self.client.username_pw_set(username, config.get('password') or None)
        if self.use_tls:
            self.client.tls_set()

        self.client.reconnect_delay_set(min_delay=1, max_delay=60)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        try:
            self.client.connect_async(self.host, self.port, keepalive=self.keepalive)
            self.client.loop_start()
            logger.info(f"Connecting to {self.server_url} as '{self.client_id}'")
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Failed to connect to: {self.server_url}: {e}")
            return False

    def disconnect(self) -> None:
        try:
            self.client.disconnect()
        finally:
            self.client.loop_stop()
        self._connected = False
        logger.info("MQTT client stopped")

    def publish(self, topic: str, payload: bytes) -> None:
        """Publish a message, or queue it while disconnected.

        QoS 1 and 2 messages are queued by paho itself. QoS 0 messages are
        held in a bounded buffer and flushed once the connection is back.

        Raises:
            PublishFailure: If the call is invalid or the offline buffer is full.
        """
        if not topic or "+" in topic or "#" in topic:
            raise PublishFailure(f"Invalid publish topic: '{topic}'")

        if self.qos == 0 and not self._connected:
            self._buffer_offline(topic, payload)
            return

        try:
            info = self.client.publish(topic, payload, qos=self.qos)
        except ValueError as e:
            raise PublishFailure(f"Invalid publish to '{topic}': {e}") from e

        if info.rc == mqtt.MQTT_ERR_NO_CONN:
            if self.qos == 0:
                self._buffer_offline(topic, payload)
            else:
                logger.info(f"Message for '{topic}' queued by the client until reconnect")
            return

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishFailure(f"Publish to '{topic}' rejected: {mqtt.error_string(info.rc)}")

    @property
    def buffered_count(self) -> int:
        with self._buffer_lock:
            return len(self._offline_buffer)

    def _buffer_offline(self, topic: str, payload: bytes) -> None:
        with self._buffer_lock:
            if len(self._offline_buffer) >= self.offline_buffer_size:
                raise PublishFailure(
                    f"Offline buffer full ({self.offline_buffer_size}), dropped message for '{topic}'"
                )
            self._offline_buffer.append((topic, bytes(payload)))
            buffered = len(self._offline_buffer)
        logger.info(f"Message for '{topic}' buffered while disconnected ({buffered} pending)")

    def _flush_offline_buffer(self) -> None:
        sent = 0
        while True:
            with self._buffer_lock:
                if not self._offline_buffer:
                    break
                topic, payload = self._offline_buffer.popleft()

            info = self.client.publish(topic, payload, qos=self.qos)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                with self._buffer_lock:
                    self._offline_buffer.appendleft((topic, payload))
                logger.warning(f"Flushing buffered messages stopped: {mqtt.error_string(info.rc)}")
                break
            sent += 1

        if sent:
            logger.info(f"Sent {sent} buffered messages")

    def topic_matches(self, subscription: str, topic: str) -> bool:
        return mqtt.topic_matches_sub(subscription, topic)

    def _subscribe_transport(self, topic: str) -> None:
        if not self._connected:
            # Subscribed from _on_connect once the session is up
            return

        rc, _ = self.client.subscribe(topic, qos=self.qos)
        if rc == mqtt.MQTT_ERR_SUCCESS:
            logger.info(f"Subscribed to {topic}")
        else:
            logger.warning(f"Failed to subscribe to {topic}: {mqtt.error_string(rc)}")

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error(f"Connection to {self.server_url} refused: {reason_code}")
            return

        reconnect = self._has_connected
        self._connected = True
        self._has_connected = True

        if reconnect:
            logger.info("Reconnected")
        else:
            logger.info(f"Connected to: {self.server_url}")

        # Subscriptions do not survive a new session
        for topic in self.subscriptions():
            self._subscribe_transport(topic)
        self._flush_offline_buffer()

        self._emit_connected(reconnect=reconnect, server=self.server_url)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected = False
        logger.info(f"The connection was lost: {reason_code}")
        self._emit_disconnected(reason=str(reason_code))

    def _on_message(self, client, userdata, message) -> None:
        logger.debug(f"Incoming message on {message.topic}: {len(message.payload)} bytes")
        self._deliver(message.topic, message.payload)
