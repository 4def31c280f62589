import logging

import pytest

from event_gateway.core.consumption.consumers import (
    LoggingEventConsumer,
    UserDeletionEventConsumer,
)
from event_gateway.core.filter import NODE_DELETED, NODE_UPDATED
from tests.helpers.fakes import make_event, make_person_deleted_event

LOGGER = "tests.logging_consumer"


class TestLoggingEventConsumer:
    @pytest.mark.asyncio
    async def test_logs_once_at_configured_level(self, caplog):
        consumer = LoggingEventConsumer(level="warning", target=logging.getLogger(LOGGER))

        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            await consumer.consume_event(make_event(event_id="evt-7"))

        records = [r for r in caplog.records if r.name == LOGGER]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert "evt-7" in records[0].getMessage()

    def test_unknown_level_falls_back_to_info(self):
        assert LoggingEventConsumer(level="LOUD").level == logging.INFO


class RecordingHandler:
    def __init__(self) -> None:
        self.deleted: list[str] = []

    async def user_deleted(self, username: str) -> None:
        self.deleted.append(username)


class TestUserDeletionEventConsumer:
    @pytest.mark.asyncio
    async def test_notifies_handlers_of_deleted_person(self):
        first, second = RecordingHandler(), RecordingHandler()
        consumer = UserDeletionEventConsumer([first, second])

        await consumer.consume_event(make_person_deleted_event("alice"))

        assert first.deleted == ["alice"]
        assert second.deleted == ["alice"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [
            make_event(NODE_DELETED, node_type="cm:content"),
            make_event(NODE_UPDATED, node_type="cm:person", properties={"cm:userName": "a"}),
            make_event(NODE_DELETED, node_type="cm:person"),
        ],
    )
    async def test_ignores_other_events(self, event):
        handler = RecordingHandler()

        await UserDeletionEventConsumer([handler]).consume_event(event)

        assert handler.deleted == []
