"""ResourceStore: per-key state, de-duplication, invalidation."""

import asyncio

import pytest

from recruitai.orchestrator.resource_store import (
    ACTIVE_VACANCIES_KEY,
    ResourceStore,
    SyncStatus,
    candidate_applications_key,
    verdict_key,
)
from recruitai.orchestrator.schema import Application, ApplicationStatus, Vacancy
from recruitai.utils.error_handlers import AuthError, ErrorKind, NetworkError


class CountingFetcher:
    """Fetcher that returns queued results one by one, optionally held by a gate."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.gate = None

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def record_statuses(store, key):
    seen = []
    store.subscribe(lambda changed: seen.append(store.read(key).status) if changed == key else None)
    return seen


class TestLoad:

    async def test_idle_loading_ready(self, store):
        fetch = CountingFetcher(["a", "b"])
        seen = record_statuses(store, "k")

        assert store.read("k").status == SyncStatus.IDLE
        task = store.load("k", fetch)
        assert store.read("k").is_loading
        state = await task

        assert state.is_ready
        assert store.read("k").data == ["a", "b"]
        assert store.read("k").fetched_at is not None
        assert seen == [SyncStatus.LOADING, SyncStatus.READY]

    async def test_concurrent_loads_share_one_fetch(self, store):
        fetch = CountingFetcher(["only"])
        fetch.gate = asyncio.Event()

        first = store.load("k", fetch)
        second = store.load("k", fetch)
        assert first is second
        assert store.is_inflight("k")

        fetch.gate.set()
        await first

        assert fetch.calls == 1
        assert not store.is_inflight("k")

    async def test_load_after_completion_fetches_again(self, store):
        fetch = CountingFetcher([1], [2])

        await store.load("k", fetch)
        await store.load("k", fetch)

        assert fetch.calls == 2
        assert store.read("k").data == [2]

    async def test_keys_are_independent(self, store):
        fetch_a = CountingFetcher("A")
        fetch_b = CountingFetcher(NetworkError("down"))

        await asyncio.gather(store.load("a", fetch_a), store.load("b", fetch_b))

        assert store.read("a").is_ready
        assert store.read("b").is_error


class TestErrors:

    async def test_error_replaces_data_by_default(self, store):
        fetch = CountingFetcher(["old"], NetworkError("connection refused"))

        await store.load("k", fetch)
        state = await store.load("k", fetch)

        assert state.is_error
        assert state.error_kind == ErrorKind.NETWORK
        assert state.data is None
        assert "connection refused" in state.error_message

    async def test_stale_data_kept_when_enabled(self):
        store = ResourceStore(stale_while_revalidate=True)
        fetch = CountingFetcher(["old"], AuthError("expired", 401))

        await store.load("k", fetch)
        state = await store.load("k", fetch)

        assert state.is_error
        assert state.error_kind == ErrorKind.AUTH
        assert state.data == ["old"]

    async def test_per_call_override(self, store):
        fetch = CountingFetcher(["old"], NetworkError("down"))

        await store.load("k", fetch)
        state = await store.load("k", fetch, stale_while_revalidate=True)

        assert state.data == ["old"]

    async def test_unexpected_exception_becomes_unknown_error(self, store):
        fetch = CountingFetcher(KeyError("boom"))

        state = await store.load("k", fetch)

        assert state.is_error
        assert state.error_kind == ErrorKind.UNKNOWN


class TestInvalidation:

    async def test_invalidate_resets_to_idle(self, store):
        await store.load("k", CountingFetcher(["x"]))

        store.invalidate("k")

        assert store.read("k").is_idle
        assert store.read("k").data is None

    async def test_invalidate_detaches_running_fetch(self, store):
        fetch = CountingFetcher(["before write"], ["after write"])
        fetch.gate = asyncio.Event()

        old = store.load("k", fetch)
        store.invalidate("k")
        assert not store.is_inflight("k")

        fetch.gate.set()
        new = store.load("k", fetch)
        assert new is not old
        await asyncio.gather(old, new)

        assert fetch.calls == 2
        assert store.read("k").data == ["after write"]

    async def test_invalidated_fetch_landing_last_is_dropped(self, store):
        slow = CountingFetcher(["before write"])
        slow.gate = asyncio.Event()

        old = store.load("k", slow)
        store.invalidate("k")
        await store.load("k", CountingFetcher(["after write"]))
        slow.gate.set()
        await old

        assert store.read("k").is_ready
        assert store.read("k").data == ["after write"]

    async def test_invalidate_unknown_key_is_silent(self, store):
        seen = record_statuses(store, "nothing")
        store.invalidate("nothing")
        assert seen == []

    async def test_clear_drops_in_flight_result(self, store):
        fetch = CountingFetcher(["previous user's data"])
        fetch.gate = asyncio.Event()

        task = store.load("k", fetch)
        store.clear()
        fetch.gate.set()
        await task

        assert store.read("k").is_idle
        assert not store.is_inflight("k")

    async def test_identity_change_clears_everything(self, store):
        await store.load("a", CountingFetcher(1))
        await store.load("b", CountingFetcher(2))

        store.on_identity_change(None)

        assert store.read("a").is_idle
        assert store.read("b").is_idle


class TestReadFilter:

    async def test_archived_vacancies_hidden_from_active_list(self, store):
        vacancies = [
            Vacancy(id="v1", title="Open", is_archived=False),
            Vacancy(id="v2", title="Closed", is_archived=True),
        ]

        await store.load(ACTIVE_VACANCIES_KEY, CountingFetcher(vacancies))

        assert [v.id for v in store.read(ACTIVE_VACANCIES_KEY).data] == ["v1"]

    async def test_other_keys_are_not_filtered(self, store):
        vacancies = [Vacancy(id="v2", title="Closed", is_archived=True)]

        await store.load("vacancies:recruiter:r1", CountingFetcher(vacancies))

        assert len(store.read("vacancies:recruiter:r1").data) == 1


class TestPatchApplication:

    async def test_patch_reaches_list_and_detail(self, store):
        app = Application(id="a1", vacancy_id="v1", candidate_id="c1", status=ApplicationStatus.NEW)
        other = Application(id="a2", vacancy_id="v1", candidate_id="c2")
        list_key = candidate_applications_key("c1")

        await store.load(list_key, CountingFetcher([app, other]))
        store.put("application:a1", app)

        touched = store.patch_application("a1", status=ApplicationStatus.OFFER)

        assert touched == 2
        assert store.read(list_key).data[0].status == ApplicationStatus.OFFER
        assert store.read(list_key).data[1].status == ApplicationStatus.NEW
        assert store.read("application:a1").data.status == ApplicationStatus.OFFER
        assert store.find_application("a1").status == ApplicationStatus.OFFER

    async def test_patch_unknown_application_touches_nothing(self, store):
        await store.load(verdict_key("a1"), CountingFetcher(None))

        assert store.patch_application("missing", status=ApplicationStatus.OFFER) == 0
        assert store.find_application("missing") is None


@pytest.mark.parametrize("stale", [False, True])
async def test_wait_returns_settled_state(stale):
    store = ResourceStore(stale_while_revalidate=stale)
    fetch = CountingFetcher("value")
    fetch.gate = asyncio.Event()

    store.load("k", fetch)
    asyncio.get_running_loop().call_soon(fetch.gate.set)
    state = await store.wait("k")

    assert state.is_ready
    assert state.data == "value"
