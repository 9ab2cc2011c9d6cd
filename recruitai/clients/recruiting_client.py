"""
Recruiting API Client

Thin async wrapper around the recruiting backend's REST API. Every
method returns canonical models from `schema.py` or raises one of the
typed errors from `error_handlers.py`; there is no business logic here.
"""

import asyncio
import json
from typing import Any, Optional, Type, TypeVar

import aiohttp
import pydantic
from loguru import logger

from config import config
from recruitai.orchestrator.schema import (
    VERDICT_FIELDS,
    AIVerdict,
    Application,
    ApplicationStatus,
    GeneratedMessage,
    LoginResponse,
    ResumeFile,
    Role,
    SubmissionReceipt,
    Template,
    Vacancy,
)
from recruitai.utils.error_handlers import (
    AuthError,
    NetworkError,
    NotFoundError,
    RecruitingError,
    UnknownError,
    ValidationError,
    api_retry_handler,
)

M = TypeVar("M", bound=pydantic.BaseModel)

retry_reads = api_retry_handler(
    attempts=config.api.retry_attempts,
    min_wait=config.api.retry_min_wait,
    max_wait=config.api.retry_max_wait,
)


def _error_for_status(status: int, message: str) -> RecruitingError:
    if status in (401, 403):
        return AuthError(message, status)
    if status == 404:
        return NotFoundError(message, status)
    if 400 <= status < 500:
        return ValidationError(message, status)
    return UnknownError(message, status)


def _parse_one(model: Type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise UnknownError(f"Unexpected {model.__name__} payload: {e.error_count()} invalid field(s)") from e


def _parse_many(model: Type[M], payload: Any) -> list[M]:
    """
    Parse a list answer, skipping items that do not fit `model`.

    One malformed record (say, an application status we do not know)
    is logged and left out rather than failing the whole list; a list
    where nothing parses is still an UnknownError.
    """
    # An empty slice arrives as JSON null from some backend revisions
    if payload is None:
        return []
    # Some endpoints wrap lists: {"items": [...]} / {"data": [...]}
    if isinstance(payload, dict):
        for key in ("items", "data", "results"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            if not payload:
                return []
    if not isinstance(payload, list):
        raise UnknownError(f"Expected a list of {model.__name__}, got {type(payload).__name__}")

    items: list[M] = []
    skipped = 0
    for item in payload:
        try:
            items.append(model.model_validate(item))
        except pydantic.ValidationError as e:
            skipped += 1
            logger.warning(f"Skipping {model.__name__} entry: {e.error_count()} invalid field(s) in {item!r:.200}")

    if payload and not items:
        raise UnknownError(f"None of the {len(payload)} {model.__name__} entries could be read")
    if skipped:
        logger.warning(f"{skipped} of {len(payload)} {model.__name__} entries left out")
    return items


class RecruitingApiClient:
    """
    Client for the recruiting backend.

    One aiohttp session is created lazily and reused for every call;
    call `close()` when done.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or config.api.base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.api.timeout)
        self.session: Optional[aiohttp.ClientSession] = None

        self.total_requests = 0

        logger.info(f"Recruiting API client ready. Backend: {self.base_url}")

    async def _ensure_session(self):
        """Make sure there is an open HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        data: Optional[aiohttp.FormData] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body ({} when empty)."""
        await self._ensure_session()
        url = f"{self.base_url}{path}"
        self.total_requests += 1
        logger.debug(f"{method} {path} params={params}")

        try:
            async with self.session.request(method, url, params=params, json=json_body, data=data) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {path} did not complete: {e!r}")
            raise NetworkError(f"Request to {path} failed: {e!r}") from e

        body: Any = {}
        if text:
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                if status < 400:
                    raise UnknownError(f"{path} returned a non-JSON body", status)
                body = {}

        if status >= 400:
            message = f"Error: {status}"
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or message
            logger.warning(f"{method} {path} -> {status}: {message}")
            raise _error_for_status(status, str(message))

        return body

    # --- Auth ---

    async def login(self, email: str, password: str) -> LoginResponse:
        body = await self._request("POST", "/auth/login", json_body={"email": email, "password": password})
        return _parse_one(LoginResponse, body)

    async def signup(self, role: Role, payload: dict) -> LoginResponse:
        body = await self._request("POST", f"/auth/{Role(role).value}/signup", json_body=payload)
        return _parse_one(LoginResponse, body)

    # --- Vacancies ---

    @retry_reads
    async def list_recruiter_vacancies(self, recruiter_id: str) -> list[Vacancy]:
        body = await self._request("GET", "/vacancies/all", params={"id": recruiter_id})
        return _parse_many(Vacancy, body)

    @retry_reads
    async def list_active_vacancies(self) -> list[Vacancy]:
        body = await self._request("GET", "/vacancies/active")
        return _parse_many(Vacancy, body)

    async def create_vacancy(self, recruiter_id: str, title: str, ai_filters: str) -> Optional[Vacancy]:
        """Create a vacancy. Older backends answer with an empty body."""
        body = await self._request(
            "POST",
            "/vacancies",
            json_body={
                "title": title,
                "ai_filters": ai_filters,
                "recruiter_id": recruiter_id,
                "is_archived": False,
            },
        )
        if isinstance(body, dict) and body:
            try:
                return Vacancy.model_validate(body)
            except pydantic.ValidationError:
                logger.debug(f"create_vacancy answer carried no vacancy: {body}")
        return None

    async def set_archived(self, vacancy_id: str, archived: bool) -> None:
        action = "archive" if archived else "dearchive"
        await self._request("PATCH", f"/vacancies/{vacancy_id}/{action}")

    # --- Applications ---

    @retry_reads
    async def list_vacancy_applications(self, vacancy_id: str) -> list[Application]:
        body = await self._request("GET", f"/vacancies/{vacancy_id}/applications")
        return _parse_many(Application, body)

    @retry_reads
    async def list_candidate_applications(self, candidate_id: str) -> list[Application]:
        body = await self._request("GET", "/my-applications", params={"candidate_id": candidate_id})
        return _parse_many(Application, body)

    async def submit_application(self, candidate_id: str, vacancy_id: str, resume: ResumeFile) -> Optional[str]:
        """Multipart upload. Returns the new application id when the backend sends one."""
        form = aiohttp.FormData()
        form.add_field("candidate_id", str(candidate_id))
        form.add_field("vacancy_id", str(vacancy_id))
        form.add_field("resume", resume.content, filename=resume.filename, content_type=resume.content_type)

        body = await self._request("POST", "/applications", data=form)
        if not isinstance(body, dict):
            return None
        return _parse_one(SubmissionReceipt, body).application_id

    async def update_application_status(self, application_id: str, status: ApplicationStatus) -> None:
        await self._request(
            "PATCH",
            f"/applications/{application_id}/status",
            json_body={"status": ApplicationStatus(status).value},
        )

    @retry_reads
    async def fetch_ai_data(self, application_id: str) -> Optional[AIVerdict]:
        """
        AI verdict for an application, or None while scoring is still running.

        The backend answers 404 or an empty/partial body until the AI
        process has written its result.
        """
        try:
            body = await self._request("GET", f"/applications/{application_id}/ai-data")
        except NotFoundError:
            return None

        if not isinstance(body, dict) or not any(key in body for key in VERDICT_FIELDS):
            return None
        return _parse_one(AIVerdict, body)

    # --- Templates ---

    @retry_reads
    async def list_templates(self, recruiter_id: str) -> list[Template]:
        body = await self._request("GET", "/templates", params={"recruiter_id": recruiter_id})
        return _parse_many(Template, body)

    async def create_template(self, recruiter_id: str, title: str, body_text: str) -> Optional[Template]:
        body = await self._request(
            "POST",
            "/templates",
            json_body={"recruiter_id": recruiter_id, "title": title, "body_text": body_text},
        )
        if isinstance(body, dict) and body:
            try:
                return Template.model_validate(body)
            except pydantic.ValidationError:
                logger.debug(f"create_template answer carried no template: {body}")
        return None

    async def update_template(self, template_id: str, recruiter_id: str, title: str, body_text: str) -> None:
        await self._request(
            "PUT",
            f"/templates/{template_id}",
            json_body={"recruiter_id": recruiter_id, "title": title, "body_text": body_text},
        )

    async def delete_template(self, template_id: str) -> None:
        await self._request("DELETE", f"/templates/{template_id}")

    async def generate_message(
        self,
        template_id: str,
        candidate_name: str,
        contact_handle: str,
        vacancy_title: str,
    ) -> GeneratedMessage:
        body = await self._request(
            "POST",
            f"/templates/{template_id}/generate",
            json_body={
                "candidate_name": candidate_name,
                "telegram_username": contact_handle,
                "vacancy_title": vacancy_title,
            },
        )
        return _parse_one(GeneratedMessage, body if isinstance(body, dict) else {})

    async def test_connection(self) -> bool:
        """Check that the backend answers at all"""
        try:
            await self.list_active_vacancies()
            return True
        except RecruitingError as e:
            logger.error(f"Backend is not reachable: {e}")
            return False
