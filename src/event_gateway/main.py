# event_gateway/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Mapping

import uvicorn
from fastapi import FastAPI

from event_gateway.contracts.storage import SubscriptionStorage
from event_gateway.core.bootstrap import BootstrapState
from event_gateway.core.config import Settings, settings as default_settings
from event_gateway.core.consumption.consumers import (
    LoggingEventConsumer,
    UserDeletionEventConsumer,
)
from event_gateway.core.consumption.registry import EventConsumerRegistry
from event_gateway.core.consumption.router import BroadcastEventRouter, EventWorkerPool
from event_gateway.core.consumption.source import MqttEventSource
from event_gateway.core.db import create_engine, create_sessionmaker, init_db
from event_gateway.core.filter import FilterFactoryRegistry
from event_gateway.core.identity import ContextIdentityProvider
from event_gateway.core.loader import load_properties
from event_gateway.core.logging import configure_logging
from event_gateway.core.publication.broker_config import PropertiesBrokerConfigResolver
from event_gateway.core.publication.destination import DestinationResolver
from event_gateway.core.publication.factory import (
    MQTT_SUBSCRIPTION_TYPE,
    MqttSubscriptionPublisherFactory,
    SubscriptionPublisherFactoryRegistry,
    TransportFactory,
    mqtt_transport_factory,
)
from event_gateway.core.publication.mqtt import MqttConfig
from event_gateway.core.storage.memory import MemorySubscriptionStorage
from event_gateway.core.subscription.expiry import ScheduledSubscriptionStatusTask
from event_gateway.core.subscription.factory import EventSubscriptionFactory
from event_gateway.core.subscription.handling import (
    SubscriptionDisableUserDeletionHandler,
)
from event_gateway.core.subscription.registry import EventSubscriptionRegistry
from event_gateway.core.subscription.service import EventSubscriptionService
from event_gateway.core.transformation import TransformationChain

logger = logging.getLogger(__name__)


class EventGateway:
    """
    Explicit wiring of the gateway runtime.

    Example:
        gateway = EventGateway(settings)
        await gateway.start()
        await gateway.router.route_event(event)
        await gateway.stop()
    """

    def __init__(
        self,
        settings: Settings,
        storage: SubscriptionStorage | None = None,
        broker_properties: Mapping[str, str] | None = None,
        transport_factory: TransportFactory = mqtt_transport_factory,
    ) -> None:
        self.settings = settings
        self.bootstrap = BootstrapState()
        self.identity = ContextIdentityProvider()
        self.transformations = TransformationChain()

        self.consumer_registry = EventConsumerRegistry()
        self.subscription_registry = EventSubscriptionRegistry()

        if broker_properties is None:
            broker_properties = load_properties(settings.brokers_config_paths)
        self.broker_config_resolver = PropertiesBrokerConfigResolver(
            broker_properties, namespace=settings.broker_properties_namespace
        )

        self.filter_factories = FilterFactoryRegistry.with_defaults()
        self.publisher_factories = SubscriptionPublisherFactoryRegistry()
        self.publisher_factories.register(
            MQTT_SUBSCRIPTION_TYPE,
            MqttSubscriptionPublisherFactory(
                broker_config_resolver=self.broker_config_resolver,
                destination_resolver=DestinationResolver(self.bootstrap),
                transport_factory=transport_factory,
                default_retry_max_attempts=settings.publication_default_retry_max_attempts,
                default_retry_interval_ms=settings.publication_default_retry_interval_ms,
                default_circuit_threshold=settings.publication_default_circuit_threshold,
                default_circuit_half_open_after_ms=(
                    settings.publication_default_circuit_half_open_after_ms
                ),
            ),
        )
        self.subscription_factory = EventSubscriptionFactory(
            publisher_factories=self.publisher_factories,
            filter_factories=self.filter_factories,
            transformations=self.transformations,
        )

        self._engine = None
        self.storage = storage or self._build_storage()

        self.service = EventSubscriptionService(
            storage=self.storage,
            factory=self.subscription_factory,
            subscription_registry=self.subscription_registry,
            consumer_registry=self.consumer_registry,
            identity=self.identity,
            bootstrap=self.bootstrap,
        )

        self.router = BroadcastEventRouter(
            registry=self.consumer_registry,
            pool=EventWorkerPool(
                core_size=settings.consumption_core_pool_size,
                max_size=settings.consumption_max_pool_size,
                queue_capacity=settings.consumption_queue_capacity,
                keep_alive=settings.consumption_keep_alive_seconds,
            ),
        )

        self.expiry_task = ScheduledSubscriptionStatusTask(
            service=self.service,
            limit=timedelta(milliseconds=settings.subscription_expiry_limit_ms),
            fixed_delay=timedelta(milliseconds=settings.subscription_expiry_fixed_delay_ms),
        )

        self.source: MqttEventSource | None = None
        if settings.ingress_enabled:
            self.source = MqttEventSource(
                config=MqttConfig.from_url(
                    settings.ingress_broker_url,
                    username=settings.ingress_username,
                    password=settings.ingress_password,
                ),
                topic=settings.ingress_topic,
                router=self.router,
                reconnect_interval=settings.ingress_reconnect_interval,
            )

    def _build_storage(self) -> SubscriptionStorage:
        backend = self.settings.storage_backend.lower()
        if backend == "memory":
            return MemorySubscriptionStorage()
        if backend == "sql":
            from event_gateway.core.storage.sql import SqlSubscriptionStorage

            self._engine = create_engine(self.settings.database_url)
            return SqlSubscriptionStorage(create_sessionmaker(self._engine))
        raise ValueError(f"Unknown storage backend '{self.settings.storage_backend}'")

    async def start(self) -> None:
        if self._engine is not None:
            await init_db(self._engine)

        await self.router.start()

        if self.settings.logging_consumer_auto_register:
            self.consumer_registry.register(
                LoggingEventConsumer(
                    level=self.settings.logging_consumer_level,
                    message_template=self.settings.logging_consumer_message_template,
                )
            )
        if self.settings.user_deletion_enabled:
            self.consumer_registry.register(
                UserDeletionEventConsumer([SubscriptionDisableUserDeletionHandler(self.service)])
            )

        await self.service.initialize_from_storage()

        if self.settings.subscription_expiry_enabled:
            self.expiry_task.start()
        if self.source is not None:
            await self.source.start()

        logger.info("Event gateway started")

    async def stop(self) -> None:
        if self.source is not None:
            await self.source.stop()
        await self.expiry_task.stop()
        await self.router.stop()

        for event_subscription in self.subscription_registry.get_all():
            try:
                await self.service.unregister_event_subscription(event_subscription.id)
            except Exception:
                logger.exception(
                    "Failed to release subscription %s on shutdown", event_subscription.id
                )

        if self._engine is not None:
            await self._engine.dispose()
        logger.info("Event gateway stopped")

    def stats(self) -> dict[str, int]:
        return {
            "consumers": len(self.consumer_registry),
            "live_subscriptions": len(self.subscription_registry),
            "routed_events": self.router.routed_count,
            "consumer_errors": self.router.error_count,
            "pending_jobs": self.router.pool.pending,
        }


def create_app(settings: Settings | None = None, **gateway_kwargs) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, json=settings.log_json)

    try:
        gateway = EventGateway(settings, **gateway_kwargs)
    except Exception:
        logger.exception("Failed to initialize event gateway")
        raise

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    app = FastAPI(
        title="Event Gateway",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", **gateway.stats()}

    return app


def run() -> None:
    uvicorn.run(
        "event_gateway.main:create_app",
        factory=True,
        host=default_settings.api_host,
        port=default_settings.api_port,
        log_config=None,
    )
