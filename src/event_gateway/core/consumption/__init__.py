"""Event consumption: consumer registry, broadcast routing and ingress."""
