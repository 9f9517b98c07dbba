"""Publish/subscribe message bus abstraction used by the calibration protocol."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List
import logging
import threading

from core.event_bus import EventBus, Event, Events

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], None]


class PublishFailure(RuntimeError):
    """Raised when the message bus rejects a publish outright."""


@dataclass(frozen=True)
class BusMessage:
    """A message delivered by the bus."""
    topic: str
    payload: bytes


class MessageBus(ABC):
    """Abstract message bus.

    Transports never call subscriber handlers directly. Inbound messages and
    connection changes are emitted on the application EventBus, and handlers
    run on its dispatch thread, one event at a time.
    """

    def __init__(self, event_bus: EventBus, name: str):
        """Initialize message bus.

        Args:
            event_bus: Event bus that carries bus events.
            name: Source name stamped on emitted events.
        """
        self.event_bus = event_bus
        self.name = name
        self._handlers: Dict[str, List[MessageHandler]] = {}
        self._lock = threading.Lock()

        self.event_bus.subscribe(Events.BUS_MESSAGE, self._on_bus_message)

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while the transport is connected."""

    @abstractmethod
    def connect(self) -> bool:
        """Start connecting.

        Returns:
            True if the connection attempt was started.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the transport."""

    @abstractmethod
    def publish(self, topic: str, payload: bytes) -> None:
        """Queue a message for delivery without waiting for acknowledgment.

        Raises:
            PublishFailure: If the message could not be queued.
        """

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Register a handler for messages on a topic.

        Args:
            topic: Topic or topic filter.
            handler: Callable receiving (topic, payload).
        """
        with self._lock:
            first = topic not in self._handlers
            self._handlers.setdefault(topic, []).append(handler)

        if first:
            self._subscribe_transport(topic)
        logger.debug(f"{self.name}: handler subscribed to '{topic}'")

    def subscriptions(self) -> List[str]:
        with self._lock:
            return list(self._handlers.keys())

    def topic_matches(self, subscription: str, topic: str) -> bool:
        return subscription == topic

    def _subscribe_transport(self, topic: str) -> None:
        """Hook for transports that subscribe on the remote side."""

    def _deliver(self, topic: str, payload: bytes) -> None:
        self.event_bus.emit(Events.BUS_MESSAGE, BusMessage(topic, bytes(payload)), source=self.name)

    def _emit_connected(self, **info) -> None:
        self.event_bus.emit(Events.BUS_CONNECTED, info, source=self.name)

    def _emit_disconnected(self, **info) -> None:
        self.event_bus.emit(Events.BUS_DISCONNECTED, info, source=self.name)

    def _on_bus_message(self, event: Event) -> None:
        if event.source != self.name:
            return

        message: BusMessage = event.data
        with self._lock:
            handlers = [
                handler
                for subscription, topic_handlers in self._handlers.items()
                if self.topic_matches(subscription, message.topic)
                for handler in topic_handlers
            ]

        for handler in handlers:
            try:
                handler(message.topic, message.payload)
            except Exception as e:
                logger.error(f"Error in message handler for '{message.topic}': {e}")


class LoopbackMessageBus(MessageBus):
    """In-process message bus.

    Every LoopbackMessageBus sharing an EventBus sees the same traffic, the
    way clients of one broker do.
    """

    def __init__(self, event_bus: EventBus, name: str = "loopback"):
        super().__init__(event_bus, name)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        self._connected = True
        logger.info("Loopback message bus connected")
        self._emit_connected(reconnect=False, server="loopback")
        return True

    def disconnect(self) -> None:
        if self._connected:
            self._connected = False
            logger.info("Loopback message bus disconnected")
            self._emit_disconnected(reason="requested")

    def publish(self, topic: str, payload: bytes) -> None:
        if not self._connected:
            raise PublishFailure(f"Loopback bus is not connected, dropped message for '{topic}'")
        self._deliver(topic, payload)
