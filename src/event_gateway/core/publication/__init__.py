"""Publisher provisioning: broker config, destinations, resilience and MQTT."""
