"""
Submission Pipeline

Uploads a résumé against a vacancy. The AI scoring runs on the backend
after the upload is accepted, so `submit` returns as soon as the
backend says "received"; the verdict shows up later through
`ApplicationWorkflow.fetch_verdict`.
"""

from typing import TYPE_CHECKING, Optional

from loguru import logger

from config import config
from recruitai.orchestrator.schema import ResumeFile
from recruitai.utils.error_handlers import ActionResult, RecruitingError, ValidationError

if TYPE_CHECKING:
    from recruitai.clients.recruiting_client import RecruitingApiClient


class SubmissionPipeline:
    def __init__(self, client: "RecruitingApiClient", accepted_types: Optional[list[str]] = None):
        self.client = client
        self.accepted_types = [t.lower() for t in (accepted_types or config.workflow.accepted_resume_types)]

    def check(self, resume: Optional[ResumeFile]) -> Optional[ValidationError]:
        """Presence and declared type only; the document itself is not inspected."""
        if resume is None or not resume.content:
            return ValidationError("Please choose a non-empty résumé file")
        media_type = resume.content_type.split(";")[0].strip().lower()
        if media_type not in self.accepted_types:
            return ValidationError(
                f"Unsupported file type {resume.content_type!r}; accepted: {', '.join(self.accepted_types)}"
            )
        return None

    async def submit(self, candidate_id: str, vacancy_id: str, resume: Optional[ResumeFile]) -> ActionResult[Optional[str]]:
        """
        Send one multipart upload.

        A failed attempt is final: call `submit` again with a fresh file.
        The returned value is the new application id, or None when the
        backend did not send one back.
        """
        problem = self.check(resume)
        if problem is not None:
            logger.warning(f"Résumé rejected before upload: {problem.message}")
            return ActionResult.failure(problem)

        logger.info(f"Uploading {resume.filename} ({len(resume.content)} bytes) for vacancy {vacancy_id}")
        try:
            application_id = await self.client.submit_application(candidate_id, vacancy_id, resume)
        except RecruitingError as e:
            logger.error(f"Résumé upload failed: {e}")
            return ActionResult.failure(e)

        logger.success(f"Résumé accepted (application {application_id or '?'}), AI analysis pending")
        return ActionResult.success(application_id)
