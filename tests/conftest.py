"""Shared fixtures: an in-memory recruiting backend served over real HTTP."""

import asyncio
import itertools
import os
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

# Must be set before config.py is imported anywhere
os.environ.setdefault("RECRUIT_LOG_TO_FILE", "false")
os.environ.setdefault("RECRUIT_LOG_LEVEL", "WARNING")
os.environ.setdefault("RECRUIT_API_RETRY_ATTEMPTS", "1")
os.environ.setdefault("RECRUIT_API_TIMEOUT", "5")

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from recruitai.clients.recruiting_client import RecruitingApiClient
from recruitai.orchestrator.resource_store import ResourceStore
from recruitai.orchestrator.schema import AuthMode, Credentials, Role
from recruitai.orchestrator.view_controller import ViewController

# Capitalised field names seen from an older backend revision
CAPITALIZED = {
    "id": "ID",
    "title": "Title",
    "ai_filters": "AIFilters",
    "short_link": "ShortLink",
    "is_archived": "IsArchived",
    "recruiter_id": "RecruiterID",
    "vacancy_id": "VacancyID",
    "candidate_id": "CandidateID",
    "candidate_name": "CandidateName",
    "status": "Status",
    "ai_score": "AIScore",
    "applied_at": "AppliedAt",
    "body_text": "BodyText",
    "ai_verdict": "AIVerdict",
    "skills_detected": "SkillsDetected",
    "parsed_text": "ParsedText",
    "telegram_username": "TelegramUsername",
    "text": "Text",
    "telegram_link": "TelegramLink",
}


class FakeBackend:
    """
    Minimal stand-in for the recruiting API.

    `gates[path]` holds a request until the event is set; `holds[path]` lets one
    request read its data first and only then wait; `failures[(method, path)]`
    answers with a fixed (status, body) instead of the real handler.
    """

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.vacancies: dict[str, dict] = {}
        self.applications: dict[str, dict] = {}
        self.ai_data: dict[str, dict] = {}
        self.templates: dict[str, dict] = {}
        self.uploads: list[dict] = []
        self.generate_requests: list[dict] = []

        self.calls: list[tuple[str, str]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self.holds: dict[str, asyncio.Event] = {}

        self.capitalized = False
        self.active_excludes_archived = True
        self.generate_link = True
        self.signup_id_field: Optional[str] = None

        self._ids = itertools.count(1)
        self.app = web.Application(middlewares=[self._middleware])
        self._add_routes()

    # --- Seeding ---

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def add_user(self, role: str, email: str, password: str = "secret") -> str:
        user_id = self._next_id("r" if role == "recruiter" else "c")
        self.users[email] = {"id": user_id, "role": role, "password": password}
        return user_id

    def add_vacancy(self, owner_id: str, title: str, archived: bool = False, ai_filters: str = "") -> dict:
        vacancy_id = self._next_id("v")
        record = {
            "id": vacancy_id,
            "title": title,
            "ai_filters": ai_filters,
            "short_link": f"https://hire.example/j/{vacancy_id}x",
            "is_archived": archived,
            "recruiter_id": owner_id,
        }
        self.vacancies[vacancy_id] = record
        return record

    def add_application(
        self,
        vacancy_id: str,
        candidate_id: str,
        candidate_name: str = "Ana",
        status: str = "New",
        ai_score: Optional[float] = None,
    ) -> dict:
        application_id = self._next_id("a")
        record = {
            "id": application_id,
            "vacancy_id": vacancy_id,
            "candidate_id": candidate_id,
            "candidate_name": candidate_name,
            "status": status,
            "ai_score": ai_score,
            "applied_at": datetime(2026, 10, 1, tzinfo=timezone.utc).isoformat(),
        }
        self.applications[application_id] = record
        return record

    def set_verdict(self, application_id: str, payload: dict):
        self.ai_data[application_id] = payload

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    async def _hold(self, path: str):
        # One-shot: only the first request after arming waits
        hold = self.holds.pop(path, None)
        if hold is not None:
            await hold.wait()

    # --- Plumbing ---

    def _out(self, payload: Any) -> Any:
        if isinstance(payload, list):
            return [self._out(item) for item in payload]
        if isinstance(payload, dict) and self.capitalized:
            return {CAPITALIZED.get(k, k): v for k, v in payload.items()}
        return payload

    def _json(self, payload: Any, status: int = 200) -> web.Response:
        return web.json_response(self._out(payload), status=status)

    @web.middleware
    async def _middleware(self, request: web.Request, handler):
        key = (request.method, request.path)
        self.calls.append(key)
        gate = self.gates.get(request.path)
        if gate is not None:
            await gate.wait()
        if key in self.failures:
            status, body = self.failures[key]
            return web.json_response(body, status=status)
        return await handler(request)

    def _add_routes(self):
        r = self.app.router
        r.add_post("/auth/login", self.login)
        r.add_post("/auth/{role}/signup", self.signup)
        r.add_get("/vacancies/all", self.recruiter_vacancies)
        r.add_get("/vacancies/active", self.active_vacancies)
        r.add_post("/vacancies", self.create_vacancy)
        r.add_patch("/vacancies/{id}/{action}", self.archive)
        r.add_get("/vacancies/{id}/applications", self.vacancy_applications)
        r.add_get("/my-applications", self.my_applications)
        r.add_post("/applications", self.submit)
        r.add_patch("/applications/{id}/status", self.update_status)
        r.add_get("/applications/{id}/ai-data", self.get_ai_data)
        r.add_get("/templates", self.list_templates)
        r.add_post("/templates", self.create_template)
        r.add_put("/templates/{id}", self.update_template)
        r.add_delete("/templates/{id}", self.delete_template)
        r.add_post("/templates/{id}/generate", self.generate)

    # --- Handlers ---

    async def login(self, request):
        body = await request.json()
        user = self.users.get(body.get("email"))
        if user is None or user["password"] != body.get("password"):
            return web.json_response({"error": "Invalid email or password"}, status=401)
        return self._json({f"{user['role']}_id": user["id"]})

    async def signup(self, request):
        role = request.match_info["role"]
        body = await request.json()
        if body.get("email") in self.users:
            return web.json_response({"error": "Email already registered"}, status=409)
        user_id = self.add_user(role, body["email"], body["password"])
        field = self.signup_id_field or f"{role}_id"
        return self._json({field: user_id})

    async def recruiter_vacancies(self, request):
        owner = request.query.get("id")
        response = self._json([v for v in self.vacancies.values() if v["recruiter_id"] == owner])
        await self._hold(request.path)
        return response

    async def active_vacancies(self, request):
        items = list(self.vacancies.values())
        if self.active_excludes_archived:
            items = [v for v in items if not v["is_archived"]]
        return self._json(items)

    async def create_vacancy(self, request):
        body = await request.json()
        record = self.add_vacancy(body["recruiter_id"], body["title"], body.get("is_archived", False), body.get("ai_filters", ""))
        return self._json(record, status=201)

    async def archive(self, request):
        vacancy = self.vacancies.get(request.match_info["id"])
        if vacancy is None:
            return web.json_response({"error": "Vacancy not found"}, status=404)
        vacancy["is_archived"] = request.match_info["action"] == "archive"
        return self._json({"ok": True})

    async def vacancy_applications(self, request):
        vacancy_id = request.match_info["id"]
        return self._json([a for a in self.applications.values() if a["vacancy_id"] == vacancy_id])

    async def my_applications(self, request):
        candidate_id = request.query.get("candidate_id")
        return self._json([a for a in self.applications.values() if a["candidate_id"] == candidate_id])

    async def submit(self, request):
        form = await request.post()
        resume = form.get("resume")
        if resume is None or not hasattr(resume, "file"):
            return web.json_response({"error": "resume file is required"}, status=400)
        content = resume.file.read()
        self.uploads.append({
            "candidate_id": form.get("candidate_id"),
            "vacancy_id": form.get("vacancy_id"),
            "filename": resume.filename,
            "content_type": resume.content_type,
            "content": content,
        })
        record = self.add_application(form.get("vacancy_id"), form.get("candidate_id"), candidate_name=None)
        return self._json({"id": record["id"]}, status=201)

    async def update_status(self, request):
        application = self.applications.get(request.match_info["id"])
        if application is None:
            return web.json_response({"error": "Application not found"}, status=404)
        body = await request.json()
        application["status"] = body["status"]
        return self._json({"ok": True})

    async def get_ai_data(self, request):
        return self._json(self.ai_data.get(request.match_info["id"], {}))

    async def list_templates(self, request):
        owner = request.query.get("recruiter_id")
        return self._json([t for t in self.templates.values() if t["recruiter_id"] == owner])

    async def create_template(self, request):
        body = await request.json()
        template_id = self._next_id("t")
        record = {"id": template_id, "recruiter_id": body["recruiter_id"], "title": body["title"], "body_text": body["body_text"]}
        self.templates[template_id] = record
        return self._json(record, status=201)

    async def update_template(self, request):
        template = self.templates.get(request.match_info["id"])
        if template is None:
            return web.json_response({"error": "Template not found"}, status=404)
        body = await request.json()
        template.update(title=body["title"], body_text=body["body_text"])
        return self._json(template)

    async def delete_template(self, request):
        if self.templates.pop(request.match_info["id"], None) is None:
            return web.json_response({"error": "Template not found"}, status=404)
        return web.Response(status=204)

    async def generate(self, request):
        template = self.templates.get(request.match_info["id"])
        if template is None:
            return web.json_response({"error": "Template not found"}, status=404)
        body = await request.json()
        self.generate_requests.append(body)
        text = template["body_text"].replace("{name}", body["candidate_name"]).replace("{job}", body["vacancy_title"])
        payload = {"text": text}
        if self.generate_link:
            payload["telegram_link"] = f"https://t.me/{body['telegram_username']}?text={quote(text)}"
        return self._json(payload)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def server(backend):
    server = TestServer(backend.app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def client(server):
    client = RecruitingApiClient(base_url=str(server.make_url("/")))
    yield client
    await client.close()


@pytest.fixture
async def offline_client():
    """Client pointed at a port nobody listens on."""
    client = RecruitingApiClient(base_url="http://127.0.0.1:9", timeout=2)
    yield client
    await client.close()


@pytest.fixture
def store():
    return ResourceStore(stale_while_revalidate=False)


@pytest.fixture
def controller(client):
    return ViewController.create(client)


@pytest.fixture
def recruiter_id(backend):
    return backend.add_user("recruiter", "hr@example.com")


@pytest.fixture
def candidate_id(backend):
    return backend.add_user("candidate", "ana@example.com")


@pytest.fixture
async def as_recruiter(controller, recruiter_id):
    result = await controller.authenticate(
        AuthMode.LOGIN, Role.RECRUITER, Credentials(email="hr@example.com", password="secret")
    )
    assert result.ok
    await controller.settle()
    return controller


@pytest.fixture
async def as_candidate(controller, candidate_id):
    result = await controller.authenticate(
        AuthMode.LOGIN, Role.CANDIDATE, Credentials(email="ana@example.com", password="secret")
    )
    assert result.ok
    await controller.settle()
    return controller
