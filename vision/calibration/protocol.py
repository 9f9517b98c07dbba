"""Calibration message protocol between a camera node and its controller.

Control messages start a calibration round; data messages carry the
captured point sets once the round completes.

Inbound control:   {"type":"start"}
Outbound data:     {"type":"data","locations":[[[x,y],...],...]}
Outbound trigger:  {"type":"start"}

Coordinates are written with six fractional digits and a '.' decimal
point regardless of locale.
"""

import json
import logging
from typing import Optional, Sequence

from config.settings import Point
from core.event_bus import EventBus, Event, Events
from core.message_bus import MessageBus, PublishFailure
from .session import CalibrationSession, Dataset

logger = logging.getLogger(__name__)

MESSAGE_START = "start"
MESSAGE_DATA = "data"


class MalformedMessageError(ValueError):
    """Raised for inbound payloads that are not a recognized control message."""


def _format_point(point: Point) -> str:
    return f"[{point.x:.6f},{point.y:.6f}]"


def encode_dataset(dataset: Sequence[Sequence[Point]]) -> bytes:
    """Render a completed dataset as a data message.

    Args:
        dataset: Captures in order, each an ordered point set.

    Returns:
        UTF-8 encoded message.
    """
    captures = ",".join(
        "[" + ",".join(_format_point(p) for p in points) + "]"
        for points in dataset
    )
    return f'{{"type":"{MESSAGE_DATA}","locations":[{captures}]}}'.encode("utf-8")


def encode_start() -> bytes:
    """Render the start trigger message."""
    return f'{{"type":"{MESSAGE_START}"}}'.encode("utf-8")


def decode_control(payload: bytes) -> str:
    """Parse an inbound control message.

    Args:
        payload: Raw message payload.

    Returns:
        The message type.

    Raises:
        MalformedMessageError: If the payload is not a start message.
    """
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(f"Unparseable payload: {e}") from e

    if not isinstance(message, dict):
        raise MalformedMessageError(f"Expected a JSON object, got {type(message).__name__}")

    message_type = message.get("type")
    if message_type != MESSAGE_START:
        raise MalformedMessageError(f"Unrecognized message type: {message_type!r}")

    return message_type


class CalibrationProtocol:
    """Connects a CalibrationSession to the message bus."""

    def __init__(self, session: CalibrationSession, bus: MessageBus,
                 publish_topic: str, subscribe_topic: str,
                 event_bus: Optional[EventBus] = None):
        """Initialize the protocol.

        Args:
            session: Session driven by inbound control messages.
            bus: Message bus used for both directions.
            publish_topic: Topic for data messages and start triggers.
            subscribe_topic: Topic carrying inbound control messages.
            event_bus: Event bus for calibration notifications. Defaults to
                the bus's own event bus.
        """
        self.session = session
        self.bus = bus
        self.publish_topic = publish_topic
        self.subscribe_topic = subscribe_topic
        self.event_bus = event_bus or bus.event_bus
        self.messages_rejected = 0
        self.publish_failures = 0

    def bind(self) -> None:
        """Subscribe to control messages and bus connection events."""
        self.bus.subscribe(self.subscribe_topic, self.handle_message)
        self.event_bus.subscribe(Events.BUS_CONNECTED, self._on_bus_connected)
        self.event_bus.subscribe(Events.BUS_DISCONNECTED, self._on_bus_disconnected)
        logger.info(f"Calibration protocol listening on '{self.subscribe_topic}', "
                    f"publishing to '{self.publish_topic}'")

    def handle_message(self, topic: str, payload: bytes) -> bool:
        """Handle an inbound control message.

        Returns:
            True if the message started a calibration round.
        """
        try:
            decode_control(payload)
        except MalformedMessageError as e:
            self.messages_rejected += 1
            logger.warning(f"Discarding message on '{topic}': {e}")
            return False

        logger.info(f"Start message received on '{topic}'")
        self.session.begin()
        self.event_bus.emit(Events.CALIBRATION_STARTED,
                            {'capture_count': self.session.capture_count},
                            source="protocol")
        return True

    def submit_points(self, points: Sequence[Point]) -> bool:
        """Feed one frame's points to the session.

        Returns:
            True if these points completed a round. A dataset that fails to
            publish is logged and dropped, not retried.
        """
        dataset = self.session.accumulate(points)
        if dataset is None:
            return False

        if self._publish(encode_dataset(dataset), "calibration data"):
            self.event_bus.emit(Events.CALIBRATION_COMPLETED, dataset, source="protocol")
        return True

    def start_calibration(self) -> bool:
        """Ask the remote side to start a calibration round.

        Returns:
            True if the trigger was queued.
        """
        return self._publish(encode_start(), "start trigger")

    def _publish(self, payload: bytes, description: str) -> bool:
        try:
            self.bus.publish(self.publish_topic, payload)
        except PublishFailure as e:
            self.publish_failures += 1
            logger.error(f"Error publishing {description}: {e}")
            self.event_bus.emit(Events.CALIBRATION_PUBLISH_FAILED, str(e), source="protocol")
            return False

        logger.info(f"Sent {description} ({len(payload)} bytes) to '{self.publish_topic}'")
        return True

    def _on_bus_connected(self, event: Event) -> None:
        if event.source == self.bus.name:
            logger.info(f"Message bus connected: {event.data}")

    def _on_bus_disconnected(self, event: Event) -> None:
        if event.source == self.bus.name:
            logger.warning(f"Message bus disconnected: {event.data}")
