# event_gateway/core/exceptions.py
"""
Error taxonomy for the event gateway.

Configuration errors are never retried. Unsupported-type errors are kept
apart from configuration errors so callers can report them distinctly.
Publication errors are transient and drive the retry and circuit breaker
policies of a publisher.
"""
from __future__ import annotations


class EventGatewayError(Exception):
    """Base class for all gateway errors."""


class SubscriptionConfigurationError(EventGatewayError):
    """Bad or missing subscription, broker or destination configuration."""


class FilterConfigurationError(SubscriptionConfigurationError):
    """A filter factory received configuration it cannot build from."""


class UnsupportedTypeError(EventGatewayError):
    """A ``type`` string did not resolve to a registered factory."""


class UnsupportedSubscriptionTypeError(UnsupportedTypeError):
    def __init__(self, subscription_type: str | None) -> None:
        self.subscription_type = subscription_type
        super().__init__(f"Subscription type {subscription_type} is not supported")


class UnsupportedFilterTypeError(UnsupportedTypeError):
    def __init__(self, filter_type: str | None) -> None:
        self.filter_type = filter_type
        super().__init__(f"Filter type {filter_type} is not supported")


class SubscriptionNotFoundError(EventGatewayError):
    def __init__(self, subscription_id: str | None) -> None:
        self.subscription_id = subscription_id
        super().__init__(f"Subscription {subscription_id} not found")


class EventPublicationError(EventGatewayError):
    """Network or broker failure while publishing an event."""


class CircuitOpenError(EventPublicationError):
    """Raised when a publish is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit '{name}' is open, retry after {retry_after:.3f}s"
        )
