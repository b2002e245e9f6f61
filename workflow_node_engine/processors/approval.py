"""APPROVAL node processor: opens a pending request and pauses the workflow."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import ApprovalNodeConfig, Node
from workflow_node_engine.processors.base import NodeProcessor
from workflow_node_engine.services.approval_service import (
    ApprovalRequest,
    ApprovalStore,
    expiry_from_now,
    get_approval_store,
)

logger = logging.getLogger(__name__)


class ApprovalNodeProcessor(NodeProcessor):
    node_type = NodeType.APPROVAL.value

    def __init__(self, approval_store: Optional[ApprovalStore] = None):
        self._approval_store = approval_store

    @property
    def store(self) -> ApprovalStore:
        return self._approval_store or get_approval_store()

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: ApprovalNodeConfig = node.config
        if not config.approvers:
            raise ValueError("APPROVAL node requires at least one approver")

        title = substitute(config.title, context)
        description = substitute(config.description, context) if config.description else None
        timeout_seconds = config.timeout_seconds or get_settings().approval_default_timeout_seconds
        approvers = [approver.model_dump(by_alias=True) for approver in config.approvers]

        request = ApprovalRequest(
            execution_id=context.execution_id,
            workflow_id=context.workflow_id,
            node_id=node.id,
            title=title,
            description=description,
            approvers=approvers,
            required_approvals=config.required_approvals,
            timeout_action=config.timeout_action,
            notification_channels=config.notification_channels,
            custom_fields=config.custom_fields,
            input_snapshot={name: output.data for name, output in context.successful_outputs().items()},
            expires_at=expiry_from_now(timeout_seconds),
        )
        request = await self.store.create_request(request)

        context.add_log(
            LogLevel.INFO,
            f"Approval request {request.id} created, waiting for {config.required_approvals} approvals",
            "APPROVAL",
            {"approvers": len(approvers), "expiresAt": request.expires_at.isoformat()},
        )
        return self.paused(
            node,
            {
                "approvalRequestId": request.id,
                "title": title,
                "description": description,
                "approvers": approvers,
                "requiredApprovals": config.required_approvals,
                "expiresAt": request.expires_at.isoformat(),
                "timeoutAction": config.timeout_action.value,
                "notificationChannels": config.notification_channels,
            },
            started_at,
            approval_request_id=request.id,
        )


__all__ = ["ApprovalNodeProcessor"]
