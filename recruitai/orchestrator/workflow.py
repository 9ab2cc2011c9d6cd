"""
Application Workflow

Status lifecycle of a single application plus on-demand reads of its
AI verdict.

    New -> Interview | Rejected
    Interview -> Offer | Rejected
    Offer -> Rejected
    Rejected (terminal)

The graph is advisory: any requested status is sent to the backend,
shown immediately, and rolled back if the backend refuses it.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel
from loguru import logger

from recruitai.orchestrator.resource_store import ResourceStore, SyncStatus, verdict_key
from recruitai.orchestrator.schema import AIVerdict, ApplicationStatus
from recruitai.utils.error_handlers import ActionResult, ErrorKind, RecruitingError

if TYPE_CHECKING:
    from recruitai.clients.recruiting_client import RecruitingApiClient


TRANSITIONS: dict[ApplicationStatus, tuple[ApplicationStatus, ...]] = {
    ApplicationStatus.NEW: (ApplicationStatus.INTERVIEW, ApplicationStatus.REJECTED),
    ApplicationStatus.INTERVIEW: (ApplicationStatus.OFFER, ApplicationStatus.REJECTED),
    ApplicationStatus.OFFER: (ApplicationStatus.REJECTED,),
    ApplicationStatus.REJECTED: (),
}


def next_statuses(status: ApplicationStatus) -> tuple[ApplicationStatus, ...]:
    return TRANSITIONS[ApplicationStatus(status)]


class VerdictStatus(str, Enum):
    LOADING = "loading"
    PENDING = "pending"   # scoring not finished yet
    READY = "ready"       # scoring finished, fields may still be empty
    FAILED = "failed"


class VerdictResult(BaseModel):
    status: VerdictStatus
    verdict: Optional[AIVerdict] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None


class ApplicationWorkflow:
    def __init__(self, client: "RecruitingApiClient", store: ResourceStore):
        self.client = client
        self.store = store

    async def set_status(self, application_id: str, new_status: ApplicationStatus) -> ActionResult[ApplicationStatus]:
        """
        Optimistically show `new_status`, then ask the backend.

        On failure the previous status comes back, unless another change
        has replaced ours in the meantime.
        """
        new_status = ApplicationStatus(new_status)
        current = self.store.find_application(application_id)
        prior = current.status if current else None

        if prior == new_status:
            logger.debug(f"Application {application_id} already {new_status.value}, sending anyway")
        elif prior is not None and new_status not in TRANSITIONS[prior]:
            logger.info(f"Application {application_id}: {prior.value} -> {new_status.value} is off the usual path")

        self.store.patch_application(application_id, status=new_status)

        try:
            await self.client.update_application_status(application_id, new_status)
        except RecruitingError as e:
            logger.warning(f"Status change for {application_id} rejected: {e}")
            shown = self.store.find_application(application_id)
            if prior is not None and shown is not None and shown.status == new_status:
                self.store.patch_application(application_id, status=prior)
            return ActionResult.failure(e)

        logger.info(f"Application {application_id} is now {new_status.value}")
        return ActionResult.success(new_status)

    # --- AI verdict ---

    def request_verdict(self, application_id: str) -> asyncio.Task:
        """Start (or join) a verdict fetch. Called once per profile opening, never on a timer."""
        return self.store.load(verdict_key(application_id), lambda: self.client.fetch_ai_data(application_id))

    def verdict_state(self, application_id: str) -> VerdictResult:
        state = self.store.read(verdict_key(application_id))
        if state.status in (SyncStatus.IDLE, SyncStatus.LOADING):
            return VerdictResult(status=VerdictStatus.LOADING)
        if state.status == SyncStatus.ERROR:
            return VerdictResult(
                status=VerdictStatus.FAILED,
                error_kind=state.error_kind,
                error_message=state.error_message,
            )
        if state.data is None:
            return VerdictResult(status=VerdictStatus.PENDING)
        return VerdictResult(status=VerdictStatus.READY, verdict=state.data)

    async def fetch_verdict(self, application_id: str) -> VerdictResult:
        await self.request_verdict(application_id)
        return self.verdict_state(application_id)
