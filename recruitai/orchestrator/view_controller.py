"""
View Controller

Top-level state machine of the client. The active screen is a pure
function of (identity, requested view, selected vacancy/application):
see `resolve()`. Everything the screens show comes from the
ResourceStore; user actions are forwarded to the workflow, the
submission pipeline and the template engine.

Think of it as the dispatcher of a small single-page app: it decides
which page is open, asks the store for that page's data exactly once,
and turns store states into something a front end can draw.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from pydantic import BaseModel, ConfigDict
from loguru import logger

from recruitai.orchestrator.resource_store import (
    ACTIVE_VACANCIES_KEY,
    Fetcher,
    ResourceStore,
    SyncStatus,
    candidate_applications_key,
    recruiter_vacancies_key,
    templates_key,
    vacancy_applications_key,
    verdict_key,
)
from recruitai.orchestrator.schema import (
    Application,
    ApplicationStatus,
    AuthMode,
    Credentials,
    GeneratedMessage,
    Identity,
    MessageContext,
    ResumeFile,
    Role,
    Template,
    Vacancy,
)
from recruitai.orchestrator.session import AuthResult, SessionAuthority
from recruitai.orchestrator.submission import SubmissionPipeline
from recruitai.orchestrator.template_engine import TemplateEngine
from recruitai.orchestrator.workflow import ApplicationWorkflow, VerdictResult
from recruitai.utils.error_handlers import ActionResult, ErrorKind, RecruitingError, ValidationError

if TYPE_CHECKING:
    from recruitai.clients.recruiting_client import RecruitingApiClient


class View(str, Enum):
    AUTH = "auth"
    # recruiter
    RECRUITER_DASHBOARD = "recruiter_dashboard"
    CREATE_JOB = "create_job"
    JOB_DETAIL = "job_detail"
    CANDIDATE_PROFILE = "candidate_profile"
    TEMPLATES = "templates"
    CREATE_TEMPLATE = "create_template"
    # candidate
    ACTIVE_VACANCIES = "active_vacancies"
    UPLOAD = "upload"
    MY_APPLICATIONS = "my_applications"
    APPLICATION_DETAIL = "application_detail"


ROLE_VIEWS: dict[Role, frozenset[View]] = {
    Role.RECRUITER: frozenset({
        View.RECRUITER_DASHBOARD, View.CREATE_JOB, View.JOB_DETAIL,
        View.CANDIDATE_PROFILE, View.TEMPLATES, View.CREATE_TEMPLATE,
    }),
    Role.CANDIDATE: frozenset({
        View.ACTIVE_VACANCIES, View.UPLOAD, View.MY_APPLICATIONS, View.APPLICATION_DETAIL,
    }),
}

DEFAULT_VIEW: dict[Role, View] = {
    Role.RECRUITER: View.RECRUITER_DASHBOARD,
    Role.CANDIDATE: View.ACTIVE_VACANCIES,
}

NEEDS_VACANCY = frozenset({View.JOB_DETAIL, View.UPLOAD})
NEEDS_APPLICATION = frozenset({View.CANDIDATE_PROFILE, View.APPLICATION_DETAIL})

EMPTY_MESSAGES: dict[View, str] = {
    View.RECRUITER_DASHBOARD: "No vacancies yet. Create your first one.",
    View.JOB_DETAIL: "No applications for this vacancy yet.",
    View.TEMPLATES: "No message templates yet.",
    View.ACTIVE_VACANCIES: "There are no open vacancies right now.",
    View.MY_APPLICATIONS: "You have not applied to any vacancy yet.",
}


class ViewState(BaseModel):
    view: View = View.AUTH
    vacancy: Optional[Vacancy] = None
    application: Optional[Application] = None

    model_config = ConfigDict(frozen=True)


def resolve(identity: Optional[Identity], target: ViewState) -> ViewState:
    """
    Total transition function.

    No identity always means the sign-in view. A view that belongs to
    the other role, or a detail view without its selected entity,
    falls back to the role's home view.
    """
    if identity is None:
        return ViewState(view=View.AUTH)

    home = ViewState(view=DEFAULT_VIEW[identity.role])
    if target.view not in ROLE_VIEWS[identity.role]:
        return home
    if target.view in NEEDS_VACANCY and target.vacancy is None:
        return home
    if target.view in NEEDS_APPLICATION and target.application is None:
        return home
    return target


class ScreenStatus(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    level: NoticeLevel
    message: str


class Screen(BaseModel):
    """Everything a front end needs to draw the current view."""
    view: View
    status: ScreenStatus
    identity: Optional[Identity] = None
    data: Any = None
    message: Optional[str] = None
    vacancy: Optional[Vacancy] = None
    application: Optional[Application] = None
    verdict: Optional[VerdictResult] = None
    templates: list[Template] = []
    busy: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


RenderListener = Callable[[Screen], None]


class ViewController:
    def __init__(
        self,
        client: "RecruitingApiClient",
        session: SessionAuthority,
        store: ResourceStore,
        workflow: ApplicationWorkflow,
        pipeline: SubmissionPipeline,
        engine: TemplateEngine,
    ):
        self.client = client
        self.session = session
        self.store = store
        self.workflow = workflow
        self.pipeline = pipeline
        self.engine = engine

        self.state = ViewState()
        self._generation = 0
        self._navigating = False
        self._busy: Optional[str] = None
        self._notices: list[Notice] = []
        self._render_listeners: list[RenderListener] = []

        # Store hears about identity changes before we start loading for it
        self.session.subscribe(self.store.on_identity_change)
        self.session.subscribe(self._on_identity_change)
        self.store.subscribe(self._on_store_change)

    @classmethod
    def create(cls, client: "RecruitingApiClient") -> "ViewController":
        store = ResourceStore()
        return cls(
            client=client,
            session=SessionAuthority(client),
            store=store,
            workflow=ApplicationWorkflow(client, store),
            pipeline=SubmissionPipeline(client),
            engine=TemplateEngine(client),
        )

    # --- Observation ---

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.identity

    @property
    def view(self) -> View:
        return self.state.view

    def on_render(self, listener: RenderListener) -> Callable[[], None]:
        self._render_listeners.append(listener)
        return lambda: self._render_listeners.remove(listener)

    def _emit(self):
        if not self._render_listeners:
            return
        screen = self.screen()
        for listener in list(self._render_listeners):
            listener(screen)

    def pop_notices(self) -> list[Notice]:
        notices, self._notices = self._notices, []
        return notices

    def _notice(self, level: NoticeLevel, message: str):
        self._notices.append(Notice(level=level, message=message))

    def _fail(self, what: str, error: RecruitingError):
        logger.warning(f"{what}: {error}")
        self._notice(NoticeLevel.ERROR, f"{what}: {error.message}")
        self.session.handle_error(error.kind)

    # --- Navigation ---

    def _requirements(self, state: ViewState) -> list[tuple[str, Fetcher]]:
        """Keys the view needs, primary first, with the fetcher for each."""
        identity = self.session.identity
        if identity is None:
            return []
        client = self.client
        user_id = identity.id
        view = state.view

        if view == View.RECRUITER_DASHBOARD:
            return [(recruiter_vacancies_key(user_id), lambda: client.list_recruiter_vacancies(user_id))]
        if view == View.JOB_DETAIL:
            vacancy_id = state.vacancy.id
            return [(vacancy_applications_key(vacancy_id), lambda: client.list_vacancy_applications(vacancy_id))]
        if view == View.CANDIDATE_PROFILE:
            application_id = state.application.id
            return [
                (verdict_key(application_id), lambda: client.fetch_ai_data(application_id)),
                (templates_key(user_id), lambda: client.list_templates(user_id)),
            ]
        if view == View.TEMPLATES:
            return [(templates_key(user_id), lambda: client.list_templates(user_id))]
        if view == View.ACTIVE_VACANCIES:
            return [(ACTIVE_VACANCIES_KEY, client.list_active_vacancies)]
        if view == View.MY_APPLICATIONS:
            return [(candidate_applications_key(user_id), lambda: client.list_candidate_applications(user_id))]
        if view == View.APPLICATION_DETAIL:
            application_id = state.application.id
            return [(verdict_key(application_id), lambda: client.fetch_ai_data(application_id))]
        return []

    def required_keys(self) -> list[str]:
        return [key for key, _ in self._requirements(self.state)]

    def navigate(
        self,
        view: View,
        vacancy: Optional[Vacancy] = None,
        application: Optional[Application] = None,
    ) -> ViewState:
        """
        Switch views. Triggers one store load per key the new view needs.

        In-flight loads of the previous view are not cancelled; their
        results land in the store but no longer drive rendering.
        """
        target = ViewState(view=View(view), vacancy=vacancy, application=application)
        resolved = resolve(self.session.identity, target)
        if resolved.view != target.view:
            logger.info(f"{target.view.value} is not reachable here, showing {resolved.view.value}")

        self.state = resolved
        self._generation += 1

        self._navigating = True
        try:
            for key, fetcher in self._requirements(resolved):
                self.store.load(key, fetcher)
        finally:
            self._navigating = False

        logger.debug(f"View -> {resolved.view.value}")
        self._emit()
        return resolved

    def go_home(self) -> ViewState:
        identity = self.session.identity
        if identity is None:
            return self.navigate(View.AUTH)
        return self.navigate(DEFAULT_VIEW[identity.role])

    def refresh(self) -> list[asyncio.Task]:
        """Re-request the current view's data (joins fetches already running)."""
        return [self.store.load(key, fetcher) for key, fetcher in self._requirements(self.state)]

    async def settle(self):
        """Wait until none of the current view's keys is loading."""
        while True:
            pending = [key for key in self.required_keys() if self.store.is_inflight(key)]
            if not pending:
                return
            await asyncio.gather(*(self.store.wait(key) for key in pending))

    def _refresh_key(self, key: str):
        """Drop `key` and reload it right away if the current view shows it."""
        self.store.invalidate(key)
        for shown_key, fetcher in self._requirements(self.state):
            if shown_key == key:
                self.store.load(key, fetcher)

    # --- Subscriptions ---

    def _on_identity_change(self, identity: Optional[Identity]):
        if identity is None:
            self.state = ViewState(view=View.AUTH)
            self._generation += 1
            self._emit()
            return
        self.navigate(DEFAULT_VIEW[identity.role])

    def _on_store_change(self, key: str):
        if self._navigating or key not in self.required_keys():
            return
        state = self.store.read(key)
        if state.status == SyncStatus.ERROR and state.error_kind == ErrorKind.AUTH:
            self.session.handle_error(ErrorKind.AUTH)
            return
        self._emit()

    # --- Rendering ---

    def screen(self) -> Screen:
        state = self.state
        identity = self.session.identity
        screen = Screen(
            view=state.view,
            status=ScreenStatus.READY,
            identity=identity,
            vacancy=state.vacancy,
            application=self._current_application(),
            busy=self._busy,
        )
        keys = self.required_keys()
        if not keys:
            return screen

        primary = self.store.read(keys[0])
        updates: dict[str, Any] = {"data": primary.data}

        if primary.status in (SyncStatus.IDLE, SyncStatus.LOADING):
            updates["status"] = ScreenStatus.LOADING
        elif primary.status == SyncStatus.ERROR:
            updates["status"] = ScreenStatus.ERROR
            updates["message"] = primary.error_message or "Something went wrong"
        elif isinstance(primary.data, list) and not primary.data:
            updates["status"] = ScreenStatus.EMPTY
            updates["message"] = EMPTY_MESSAGES.get(state.view)

        if state.view in NEEDS_APPLICATION:
            updates["verdict"] = self.workflow.verdict_state(state.application.id)
            # The verdict being unavailable is shown inside the view, not as a failed screen
            if primary.status == SyncStatus.ERROR:
                updates["status"] = ScreenStatus.READY
                updates["message"] = None
        if state.view == View.CANDIDATE_PROFILE and identity is not None:
            templates = self.store.read(templates_key(identity.id))
            updates["templates"] = templates.data if templates.is_ready and templates.data else []

        return screen.model_copy(update=updates)

    def _current_application(self) -> Optional[Application]:
        selected = self.state.application
        if selected is None:
            return None
        return self.store.find_application(selected.id) or selected

    # --- Auth actions ---

    async def authenticate(self, mode: AuthMode, role: Role, credentials: Credentials) -> AuthResult:
        result = await self.session.authenticate(mode, role, credentials)
        if not result.ok:
            self._notice(NoticeLevel.ERROR, result.message or "Could not sign in")
        return result

    def logout(self):
        self.session.clear()

    # --- Selection ---

    def open_vacancy(self, vacancy: Vacancy) -> ViewState:
        identity = self.session.identity
        if identity is not None and identity.role == Role.CANDIDATE:
            return self.choose_vacancy(vacancy)
        return self.navigate(View.JOB_DETAIL, vacancy=vacancy)

    def choose_vacancy(self, vacancy: Vacancy) -> ViewState:
        return self.navigate(View.UPLOAD, vacancy=vacancy)

    def open_application(self, application: Application) -> ViewState:
        identity = self.session.identity
        if identity is not None and identity.role == Role.CANDIDATE:
            return self.navigate(View.APPLICATION_DETAIL, vacancy=self._vacancy_of(application), application=application)
        return self.navigate(View.CANDIDATE_PROFILE, vacancy=self.state.vacancy, application=application)

    def _vacancy_of(self, application: Application) -> Optional[Vacancy]:
        vacancies = self.store.read(ACTIVE_VACANCIES_KEY).data or []
        return next((v for v in vacancies if v.id == application.vacancy_id), None)

    def find_vacancy(self, code: str) -> Optional[Vacancy]:
        """Look up an open vacancy by the code at the end of its short link."""
        code = code.strip().strip("/")
        if not code:
            return None
        vacancies = self.store.read(ACTIVE_VACANCIES_KEY).data or []
        for vacancy in vacancies:
            link = (vacancy.short_link or "").rstrip("/")
            if vacancy.id == code or link == code or link.endswith(f"/{code}"):
                return vacancy
        return None

    def _require(self, role: Role) -> Identity:
        identity = self.session.identity
        if identity is None or identity.role != role:
            raise PermissionError(f"This action needs a signed-in {role.value}")
        return identity

    # --- Recruiter actions ---

    async def create_vacancy(self, title: str, ai_filters: str) -> ActionResult[Optional[Vacancy]]:
        identity = self._require(Role.RECRUITER)
        if not title.strip():
            error = ValidationError("Vacancy title is required")
            self._notice(NoticeLevel.ERROR, error.message)
            return ActionResult.failure(error)

        generation = self._generation
        try:
            vacancy = await self.client.create_vacancy(identity.id, title.strip(), ai_filters.strip())
        except RecruitingError as e:
            self._fail("Could not publish the vacancy", e)
            return ActionResult.failure(e)

        self._notice(NoticeLevel.SUCCESS, f"Vacancy '{title.strip()}' published")
        self.store.invalidate(ACTIVE_VACANCIES_KEY)
        if generation == self._generation:
            self.store.invalidate(recruiter_vacancies_key(identity.id))
            self.navigate(View.RECRUITER_DASHBOARD)
        else:
            self._refresh_key(recruiter_vacancies_key(identity.id))
        return ActionResult.success(vacancy)

    async def toggle_archive(self, vacancy: Vacancy) -> ActionResult[bool]:
        identity = self._require(Role.RECRUITER)
        archived = not vacancy.is_archived
        try:
            await self.client.set_archived(vacancy.id, archived)
        except RecruitingError as e:
            self._fail("Could not change the vacancy", e)
            return ActionResult.failure(e)

        logger.info(f"Vacancy {vacancy.id} {'archived' if archived else 'restored'}")
        self.store.invalidate(ACTIVE_VACANCIES_KEY)
        self._refresh_key(recruiter_vacancies_key(identity.id))
        return ActionResult.success(archived)

    async def set_status(self, status: ApplicationStatus) -> ActionResult[ApplicationStatus]:
        self._require(Role.RECRUITER)
        application = self.state.application
        if application is None:
            error = ValidationError("No application selected")
            self._notice(NoticeLevel.ERROR, error.message)
            return ActionResult.failure(error)

        result = await self.workflow.set_status(application.id, status)
        if not result.ok:
            self._fail("Status was not changed", result.error)
        self._emit()
        return result

    async def save_template(self, title: str, body_text: str) -> ActionResult[Optional[Template]]:
        identity = self._require(Role.RECRUITER)
        generation = self._generation
        try:
            template = await self.client.create_template(identity.id, title.strip(), body_text)
        except RecruitingError as e:
            self._fail("Could not save the template", e)
            return ActionResult.failure(e)

        unknown = self.engine.unknown_tokens(body_text)
        if unknown:
            self._notice(NoticeLevel.INFO, f"These placeholders will be sent as written: {', '.join(unknown)}")
        if generation == self._generation:
            self.store.invalidate(templates_key(identity.id))
            self.navigate(View.TEMPLATES)
        else:
            self._refresh_key(templates_key(identity.id))
        return ActionResult.success(template)

    async def update_template(self, template: Template, title: str, body_text: str) -> ActionResult[None]:
        identity = self._require(Role.RECRUITER)
        try:
            await self.client.update_template(template.id, identity.id, title.strip(), body_text)
        except RecruitingError as e:
            self._fail("Could not update the template", e)
            return ActionResult.failure(e)
        self._refresh_key(templates_key(identity.id))
        return ActionResult.success()

    async def delete_template(self, template: Template) -> ActionResult[None]:
        identity = self._require(Role.RECRUITER)
        try:
            await self.client.delete_template(template.id)
        except RecruitingError as e:
            self._fail("Could not delete the template", e)
            return ActionResult.failure(e)
        self._refresh_key(templates_key(identity.id))
        return ActionResult.success()

    async def generate_message(self, template: Template) -> Optional[GeneratedMessage]:
        self._require(Role.RECRUITER)
        application = self._current_application()
        if application is None:
            self._notice(NoticeLevel.ERROR, "Open a candidate first")
            return None

        verdict = self.workflow.verdict_state(application.id).verdict
        context = MessageContext(
            candidate_name=application.candidate_name,
            contact_handle=verdict.contact_handle if verdict else None,
            vacancy_title=self.state.vacancy.title if self.state.vacancy else "",
        )
        try:
            return await self.engine.generate(template, context)
        except RecruitingError as e:
            self._fail("Could not generate the message", e)
            return None

    # --- Candidate actions ---

    async def submit_resume(self, resume: Optional[ResumeFile]) -> ActionResult[Optional[str]]:
        identity = self._require(Role.CANDIDATE)
        vacancy = self.state.vacancy
        if self.state.view != View.UPLOAD or vacancy is None:
            error = ValidationError("Choose a vacancy first")
            self._notice(NoticeLevel.ERROR, error.message)
            return ActionResult.failure(error)

        generation = self._generation
        self._busy = "The AI is analysing your résumé..."
        self._emit()
        try:
            result = await self.pipeline.submit(identity.id, vacancy.id, resume)
        finally:
            self._busy = None

        if not result.ok:
            self._fail("Upload failed", result.error)
            self._emit()
            return result

        self._notice(NoticeLevel.SUCCESS, "Résumé sent! The AI has started its analysis.")
        key = candidate_applications_key(identity.id)
        if generation == self._generation:
            self.store.invalidate(key)
            self.navigate(View.MY_APPLICATIONS)
        else:
            self._refresh_key(key)
        return result
