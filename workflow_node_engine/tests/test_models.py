"""
Tests for node and debug request models.
"""
import pytest

from workflow_node_engine.models.execution import DebugRequest
from workflow_node_engine.models.node_enums import HttpAuthType, HttpMethod
from workflow_node_engine.models.workflow import (
    ApprovalNodeConfig,
    HttpNodeConfig,
    LoopNodeConfig,
    Node,
)


class TestNodeSerialization:
    def test_loop_config_survives_dump_and_validate(self):
        node = Node(
            id="loop_1",
            type="LOOP",
            name="Each item",
            config={"loopType": "FOR", "forConfig": {"arrayVariable": "List.items", "itemName": "row"}},
        )

        dumped = node.model_dump()
        restored = Node.model_validate(dumped)

        assert dumped["config"]["for_config"]["array_variable"] == "List.items"
        assert isinstance(restored.config, LoopNodeConfig)
        assert restored.config.for_config.item_name == "row"
        assert restored == node

    def test_json_dump_by_alias_round_trips(self):
        node = Node(
            id="a1",
            type="APPROVAL",
            name="Gate",
            config={"title": "Ship?", "approvers": [{"targetId": "u_1"}], "timeoutSeconds": 60},
        )

        payload = node.model_dump_json(by_alias=True)
        restored = Node.model_validate_json(payload)

        assert '"targetId":"u_1"' in payload
        assert isinstance(restored.config, ApprovalNodeConfig)
        assert restored.config.approvers[0].target_id == "u_1"
        assert restored.config.timeout_seconds == 60

    def test_debug_request_keeps_node_config(self):
        request = DebugRequest(
            workflow_id="wf_1",
            organization_id="org_1",
            user_id="user_1",
            node=Node(id="c1", type="CODE", name="Script", config={"code": "result = 1"}),
        )

        restored = DebugRequest.model_validate(request.model_dump())

        assert restored.node.config.code == "result = 1"


class TestHttpNodeConfig:
    def test_accepts_editor_keys(self):
        node = Node(
            id="h1",
            type="HTTP",
            name="Fetch",
            config={
                "method": "post",
                "url": "https://api.example.com",
                "queryParams": {"q": "x"},
                "auth": {"type": "apikey", "apiKey": {"key": "X-Key", "value": "v", "addTo": "query"}},
                "retry": {"maxRetries": 1, "retryDelay": 0},
                "validateSSL": False,
            },
        )

        config = node.config
        assert isinstance(config, HttpNodeConfig)
        assert config.method == HttpMethod.POST
        assert config.query_params == {"q": "x"}
        assert config.auth.type == HttpAuthType.API_KEY
        assert config.auth.api_key.add_to == "query"
        assert config.retry.retry_on_status == [408, 429, 500, 502, 503, 504]
        assert config.validate_ssl is False

    def test_negative_retry_delay_is_rejected(self):
        with pytest.raises(ValueError):
            HttpNodeConfig.model_validate({"url": "https://x", "retry": {"retryDelay": -1}})
