"""
Resource Store - per-key synchronization state

Every collection the screens show (a recruiter's vacancies, the
applications of one vacancy, a verdict...) lives under its own key with
its own state: idle, loading, ready or error. Screens never keep their
own "is loading" flags; they read the store.

At most one fetch is in flight per key. A second `load()` for a key
that is still loading gets the same task back and sends nothing.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict
from loguru import logger

from config import config
from recruitai.orchestrator.schema import Application, Identity, Vacancy
from recruitai.utils.error_handlers import ErrorKind, RecruitingError

Fetcher = Callable[[], Awaitable[Any]]
StoreListener = Callable[[str], None]


# --- Keys ---

ACTIVE_VACANCIES_KEY = "vacancies:active"


def recruiter_vacancies_key(recruiter_id: str) -> str:
    return f"vacancies:recruiter:{recruiter_id}"


def vacancy_applications_key(vacancy_id: str) -> str:
    return f"applications:vacancy:{vacancy_id}"


def candidate_applications_key(candidate_id: str) -> str:
    return f"applications:candidate:{candidate_id}"


def templates_key(recruiter_id: str) -> str:
    return f"templates:{recruiter_id}"


def verdict_key(application_id: str) -> str:
    return f"verdict:{application_id}"


# --- States ---

class SyncStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ResourceState(BaseModel):
    """State of one key. `data` is set for READY, and for ERROR only when stale data was kept."""
    status: SyncStatus = SyncStatus.IDLE
    data: Any = None
    fetched_at: Optional[datetime] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def is_idle(self) -> bool:
        return self.status == SyncStatus.IDLE

    @property
    def is_loading(self) -> bool:
        return self.status == SyncStatus.LOADING

    @property
    def is_ready(self) -> bool:
        return self.status == SyncStatus.READY

    @property
    def is_error(self) -> bool:
        return self.status == SyncStatus.ERROR


IDLE = ResourceState()


def _without_archived(data: Any) -> Any:
    if not isinstance(data, list):
        return data
    return [item for item in data if not (isinstance(item, Vacancy) and item.is_archived)]


# Applied when reading, so the candidate list stays clean even when the
# backend forgets to filter
READ_FILTERS: dict[str, Callable[[Any], Any]] = {
    ACTIVE_VACANCIES_KEY: _without_archived,
}


class ResourceStore:
    """Single shared holder of every key's synchronization state."""

    def __init__(self, stale_while_revalidate: Optional[bool] = None):
        self.stale_while_revalidate = (
            config.workflow.stale_while_revalidate
            if stale_while_revalidate is None
            else stale_while_revalidate
        )
        self._states: dict[str, ResourceState] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._listeners: list[StoreListener] = []
        # Bumped by clear(); fetches started under an older epoch are dropped
        self._epoch = 0
        # Bumped per key by invalidate(); same rule, one key at a time
        self._generations: dict[str, int] = {}

    # --- Observation ---

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set(self, key: str, state: ResourceState):
        self._states[key] = state
        for listener in list(self._listeners):
            listener(key)

    def on_identity_change(self, identity: Optional[Identity]):
        """Any identity change invalidates everything fetched for the previous one."""
        self.clear()

    # --- Core operations ---

    def read(self, key: str) -> ResourceState:
        state = self._states.get(key, IDLE)
        read_filter = READ_FILTERS.get(key)
        if read_filter and state.data is not None:
            return state.model_copy(update={"data": read_filter(state.data)})
        return state

    def load(self, key: str, fetcher: Fetcher, stale_while_revalidate: Optional[bool] = None) -> asyncio.Task:
        """
        Start fetching `key` unless a fetch for it is already running.

        Returns the task of the (new or existing) fetch; awaiting it
        yields the resulting state. Must be called from a running loop.
        """
        running = self._inflight.get(key)
        if running is not None and not running.done():
            logger.debug(f"{key} is already loading, not fetching again")
            return running

        keep_stale = self.stale_while_revalidate if stale_while_revalidate is None else stale_while_revalidate
        previous = self._states.get(key, IDLE)

        generation = self._generations.get(key, 0)
        task = asyncio.create_task(self._run_fetch(key, fetcher, previous, keep_stale, self._epoch, generation))
        self._inflight[key] = task
        self._set(key, ResourceState(status=SyncStatus.LOADING))
        return task

    async def _run_fetch(
        self, key: str, fetcher: Fetcher, previous: ResourceState, keep_stale: bool, epoch: int, generation: int
    ) -> ResourceState:
        try:
            data = await fetcher()
        except RecruitingError as e:
            stale = previous.data if keep_stale and previous.status in (SyncStatus.READY, SyncStatus.ERROR) else None
            state = ResourceState(
                status=SyncStatus.ERROR,
                data=stale,
                fetched_at=previous.fetched_at if stale is not None else None,
                error_kind=e.kind,
                error_message=e.message,
            )
            logger.warning(f"Loading {key} failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected failure while loading {key}")
            state = ResourceState(status=SyncStatus.ERROR, error_kind=ErrorKind.UNKNOWN, error_message=str(e))
        else:
            state = ResourceState(status=SyncStatus.READY, data=data, fetched_at=datetime.now())
            logger.debug(f"{key} ready")
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        if epoch != self._epoch:
            logger.debug(f"Dropping result for {key}: store was cleared meanwhile")
            return state
        if generation != self._generations.get(key, 0):
            logger.debug(f"Dropping result for {key}: invalidated while loading")
            return state
        self._set(key, state)
        return state

    def invalidate(self, key: str):
        """
        Forget what we know about `key`.

        A fetch already in flight may have read the backend before the
        write that caused this call; it is detached and its result
        dropped, so the next `load()` sends a fresh request.
        """
        self._generations[key] = self._generations.get(key, 0) + 1
        if self._inflight.pop(key, None) is not None:
            logger.debug(f"Detached the running fetch of {key}")
        if key in self._states:
            self._set(key, IDLE)

    def clear(self):
        self._epoch += 1
        self._states.clear()
        self._inflight.clear()
        self._generations.clear()
        logger.debug("Resource store cleared")

    async def wait(self, key: str) -> ResourceState:
        running = self._inflight.get(key)
        if running is not None:
            await asyncio.shield(running)
        return self.read(key)

    def is_inflight(self, key: str) -> bool:
        running = self._inflight.get(key)
        return running is not None and not running.done()

    # --- Application patching ---

    def find_application(self, application_id: str) -> Optional[Application]:
        for state in self._states.values():
            for app in self._applications_in(state.data):
                if app.id == application_id:
                    return app
        return None

    def patch_application(self, application_id: str, **changes) -> int:
        """
        Apply `changes` to every copy of the application held in the
        store (list entries and detail records). Returns how many keys
        were touched.
        """
        touched = 0
        for key, state in list(self._states.items()):
            if state.data is None:
                continue
            data = state.data
            if isinstance(data, Application):
                if data.id != application_id:
                    continue
                new_data = data.model_copy(update=changes)
            elif isinstance(data, list) and any(isinstance(a, Application) and a.id == application_id for a in data):
                new_data = [
                    a.model_copy(update=changes) if isinstance(a, Application) and a.id == application_id else a
                    for a in data
                ]
            else:
                continue
            self._set(key, state.model_copy(update={"data": new_data}))
            touched += 1
        return touched

    def put(self, key: str, data: Any):
        """Store a detail record fetched or built outside `load()`."""
        self._set(key, ResourceState(status=SyncStatus.READY, data=data, fetched_at=datetime.now()))

    @staticmethod
    def _applications_in(data: Any) -> list[Application]:
        if isinstance(data, Application):
            return [data]
        if isinstance(data, list):
            return [a for a in data if isinstance(a, Application)]
        return []
