"""Subscription storage implementations."""
from event_gateway.core.storage.memory import MemorySubscriptionStorage

__all__ = ["MemorySubscriptionStorage"]
