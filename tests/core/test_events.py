import json

from event_gateway.contracts.events import NodeResource, RepoEvent, Resource
from tests.helpers.fakes import make_event


class TestRepoEvent:
    def test_node_resource_is_parsed_by_type(self):
        event = make_event(node_type="cm:folder")

        assert isinstance(event.data.resource, NodeResource)
        assert event.node_resource.node_type == "cm:folder"

    def test_other_resources_stay_generic(self):
        event = RepoEvent.model_validate(
            {
                "type": "org.alfresco.event.permission.Updated",
                "id": "e-2",
                "data": {"resource": {"@type": "PermissionResource", "id": "p-1"}},
            }
        )

        assert type(event.data.resource) is Resource
        assert event.node_resource is None

    def test_event_without_data_has_no_node(self):
        event = RepoEvent(type="t", id="e-3")

        assert event.node_resource is None

    def test_to_json_uses_wire_names_and_omits_unset(self):
        payload = json.loads(make_event().to_json())

        resource = payload["data"]["resource"]
        assert resource["@type"] == "NodeResource"
        assert resource["nodeType"] == "cm:content"
        assert "createdAt" not in resource
        assert payload["data"]["eventGroupId"] == "group-1"
        assert payload["id"] == "event-1"
