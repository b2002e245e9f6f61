"""Approval requests and their timeout sweep.

APPROVAL nodes create a pending request and pause. A human decision or the
periodic timeout sweep later moves the request out of ``PENDING``. Both paths
go through ``ApprovalStore.transition``, which only applies a change when the
request is still in the expected state, so whichever arrives second is a
no-op.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.exceptions import ApprovalTransitionError
from workflow_node_engine.models.execution import utc_now
from workflow_node_engine.models.node_enums import ApprovalStatus, TimeoutAction

logger = logging.getLogger(__name__)

TIMEOUT_OUTCOMES: Dict[TimeoutAction, ApprovalStatus] = {
    TimeoutAction.APPROVE: ApprovalStatus.APPROVED,
    TimeoutAction.REJECT: ApprovalStatus.REJECTED,
    TimeoutAction.ESCALATE: ApprovalStatus.ESCALATED,
}


class ApprovalRequest(BaseModel):
    id: str = Field(default_factory=lambda: f"apr_{uuid.uuid4().hex[:16]}")
    execution_id: str
    workflow_id: str
    node_id: str
    title: str
    description: Optional[str] = None
    approvers: List[Dict[str, Any]] = Field(default_factory=list)
    required_approvals: int = 1
    timeout_action: TimeoutAction = TimeoutAction.REJECT
    notification_channels: List[str] = Field(default_factory=list)
    custom_fields: List[Dict[str, Any]] = Field(default_factory=list)
    input_snapshot: Dict[str, Any] = Field(default_factory=dict)
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    comment: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class ApprovalStore(ABC):
    @abstractmethod
    async def create_request(self, request: ApprovalRequest) -> ApprovalRequest:
        raise NotImplementedError

    @abstractmethod
    async def get_request(self, request_id: str) -> Optional[ApprovalRequest]:
        raise NotImplementedError

    @abstractmethod
    async def list_expired(self, now: datetime) -> List[ApprovalRequest]:
        raise NotImplementedError

    @abstractmethod
    async def transition(
        self,
        request_id: str,
        expected: ApprovalStatus,
        new_status: ApprovalStatus,
        decided_by: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> bool:
        """Move ``request_id`` from ``expected`` to ``new_status``; False if it was not in ``expected``."""
        raise NotImplementedError


class InMemoryApprovalStore(ApprovalStore):
    def __init__(self):
        self._requests: Dict[str, ApprovalRequest] = {}
        self._lock = threading.Lock()

    async def create_request(self, request: ApprovalRequest) -> ApprovalRequest:
        with self._lock:
            self._requests[request.id] = request
        logger.info(f"Created approval request {request.id} for node {request.node_id}")
        return request

    async def get_request(self, request_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            return self._requests.get(request_id)

    async def list_expired(self, now: datetime) -> List[ApprovalRequest]:
        with self._lock:
            return [
                r
                for r in self._requests.values()
                if r.status == ApprovalStatus.PENDING and r.is_expired(now)
            ]

    async def transition(
        self,
        request_id: str,
        expected: ApprovalStatus,
        new_status: ApprovalStatus,
        decided_by: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> bool:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None or request.status != expected:
                return False
            self._requests[request_id] = request.model_copy(
                update={
                    "status": new_status,
                    "decided_at": utc_now(),
                    "decided_by": decided_by,
                    "comment": comment,
                }
            )
            return True


async def record_decision(
    store: ApprovalStore,
    request_id: str,
    approved: bool,
    user_id: str,
    comment: Optional[str] = None,
) -> ApprovalRequest:
    """Apply a human decision to a pending request."""
    new_status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
    applied = await store.transition(
        request_id, ApprovalStatus.PENDING, new_status, decided_by=user_id, comment=comment
    )
    if not applied:
        raise ApprovalTransitionError(f"Approval request {request_id} is not pending")
    request = await store.get_request(request_id)
    logger.info(f"Approval request {request_id} {new_status.value} by {user_id}")
    return request


class ApprovalTimeoutSweeper:
    """Applies the configured timeout action to expired requests.

    ``process_expired_requests`` is a single pass and can be called from any
    scheduler. ``run`` repeats it every ``interval_seconds`` until ``stop`` is
    set; ``start``/``stop`` wrap that in a task owned by the sweeper.
    """

    def __init__(self, store: ApprovalStore, interval_seconds: Optional[float] = None):
        self.store = store
        self.interval_seconds = interval_seconds or get_settings().approval_check_interval_seconds
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await self.process_expired_requests()
            except Exception as e:
                logger.error(f"Approval timeout sweep failed: {str(e)}")
            try:
                await asyncio.wait_for(stop.wait(), self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))
        logger.info(f"Approval timeout sweeper started, interval {self.interval_seconds}s")
        return self._task

    async def stop(self) -> None:
        if not self.running:
            return
        self._stop_event.set()
        await self._task
        logger.info("Approval timeout sweeper stopped")

    async def process_expired_requests(self, now: Optional[datetime] = None) -> List[str]:
        """
        Apply timeout actions to expired pending requests.

        Returns:
            IDs of the requests this sweep actually transitioned
        """
        now = now or utc_now()
        processed = []
        for request in await self.store.list_expired(now):
            outcome = TIMEOUT_OUTCOMES[request.timeout_action]
            applied = await self.store.transition(
                request.id,
                ApprovalStatus.PENDING,
                outcome,
                decided_by="system:timeout",
                comment="Approval timed out",
            )
            if applied:
                processed.append(request.id)
                logger.info(f"Approval request {request.id} timed out -> {outcome.value}")
            else:
                logger.info(f"Approval request {request.id} was decided before the timeout sweep")
        return processed


def expiry_from_now(timeout_seconds: int) -> datetime:
    return utc_now() + timedelta(seconds=timeout_seconds)


_store: ApprovalStore = InMemoryApprovalStore()


def get_approval_store() -> ApprovalStore:
    return _store


def set_approval_store(store: ApprovalStore) -> None:
    global _store
    _store = store


__all__ = [
    "TIMEOUT_OUTCOMES",
    "ApprovalRequest",
    "ApprovalStore",
    "InMemoryApprovalStore",
    "record_decision",
    "ApprovalTimeoutSweeper",
    "expiry_from_now",
    "get_approval_store",
    "set_approval_store",
]
