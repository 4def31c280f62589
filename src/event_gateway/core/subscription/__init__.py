"""Subscription lifecycle: live bindings, registry, service and expiry."""
