"""Application core: event bus, message bus and driver."""
