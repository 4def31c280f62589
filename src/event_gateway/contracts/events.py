# event_gateway/contracts/events.py
"""
Repository event contracts.

Events arrive as CloudEvents-style JSON envelopes. The ``data`` section
carries the resource the event is about and, for updates, the resource as
it was before the change. Node resources (``"@type": "NodeResource"``) are
parsed into :class:`NodeResource` so that filters can inspect node types
and properties; any other resource stays a generic :class:`Resource`.

Example:
    event = RepoEvent.model_validate_json(raw_bytes)
    if isinstance(event.data.resource, NodeResource):
        print(event.data.resource.node_type)

    payload = event.to_json()
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

NODE_RESOURCE_TYPE = "NodeResource"


class Resource(BaseModel):
    """Generic repository resource."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    resource_type: str | None = Field(default=None, alias="@type")
    id: str | None = None


class NodeResource(Resource):
    """A content node (file, folder, person, ...)."""

    name: str | None = None
    node_type: str | None = Field(default=None, alias="nodeType")
    is_file: bool | None = Field(default=None, alias="isFile")
    is_folder: bool | None = Field(default=None, alias="isFolder")
    created_by_user: dict[str, Any] | None = Field(default=None, alias="createdByUser")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    modified_by_user: dict[str, Any] | None = Field(
        default=None, alias="modifiedByUser"
    )
    modified_at: datetime | None = Field(default=None, alias="modifiedAt")
    properties: dict[str, Any] | None = None
    aspect_names: list[str] | None = Field(default=None, alias="aspectNames")
    primary_hierarchy: list[str] | None = Field(default=None, alias="primaryHierarchy")


def _parse_resource(value: Any) -> Any:
    if isinstance(value, dict):
        if value.get("@type") == NODE_RESOURCE_TYPE:
            return NodeResource.model_validate(value)
        return Resource.model_validate(value)
    return value


class EventData(BaseModel):
    """The ``data`` section of a repository event."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_group_id: str | None = Field(default=None, alias="eventGroupId")
    resource: NodeResource | Resource | None = None
    resource_before: NodeResource | Resource | None = Field(
        default=None, alias="resourceBefore"
    )
    resource_reader_authorities: list[str] | None = Field(
        default=None, alias="resourceReaderAuthorities"
    )
    resource_denied_authorities: list[str] | None = Field(
        default=None, alias="resourceDeniedAuthorities"
    )

    @field_validator("resource", "resource_before", mode="before")
    @classmethod
    def _resolve_resource(cls, value: Any) -> Any:
        return _parse_resource(value)


class RepoEvent(BaseModel):
    """CloudEvents-style envelope of a repository event."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    specversion: str = "1.0"
    type: str
    id: str
    source: str | None = None
    time: datetime | None = None
    dataschema: str | None = None
    datacontenttype: str | None = "application/json"
    data: EventData | None = None

    @property
    def node_resource(self) -> NodeResource | None:
        """The event resource if it is node-shaped, else None."""
        if self.data is None:
            return None
        resource = self.data.resource
        return resource if isinstance(resource, NodeResource) else None

    def to_json(self) -> str:
        """Canonical textual serialization used on the wire."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
