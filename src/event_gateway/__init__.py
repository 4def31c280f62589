"""Subscription-driven routing and publication of repository events."""

__version__ = "0.1.0"
