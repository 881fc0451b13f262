"""Tests for the Supabase-backed job store.

The central property: once a job is READY, no unforced write changes it.
"""

import asyncio
import threading

import pytest
from hypothesis import given, settings, strategies as st

from recipe_extractor.models.job import JobMeta
from recipe_extractor.models.recipe import Recipe
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.utils.errors import DatastoreError

from tests.conftest import RECIPE_ARGS, MockSupabaseClient


class TestReadAndWrite:
    @pytest.mark.asyncio
    async def test_missing_key(self, job_store: JobStore) -> None:
        assert await job_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_pending_then_ready(self, job_store: JobStore, recipe) -> None:
        pending = await job_store.mark_pending("k1", meta=JobMeta(actor_run_id="run-1"))
        assert pending.status == "PENDING"
        assert pending.value is None

        ready = await job_store.mark_ready("k1", recipe, meta=JobMeta(ai_provider="openai"))
        assert ready.status == "READY"
        assert ready.value.title == recipe.title
        assert ready.error is None
        # meta accumulates across writes
        assert ready.meta.actor_run_id == "run-1"
        assert ready.meta.ai_provider == "openai"

    @pytest.mark.asyncio
    async def test_failed_carries_error_only(self, job_store: JobStore, recipe) -> None:
        job = await job_store.upsert(
            "k1", "FAILED", value=recipe, error=None, meta=JobMeta(caption="x")
        )
        assert job.value is None

        job = await job_store.mark_failed("k1", "NoContent", "nothing scraped")
        assert job.status == "FAILED"
        assert job.error.type == "NoContent"
        assert job.meta.caption == "x"

    @pytest.mark.asyncio
    async def test_failed_job_can_become_ready(self, job_store: JobStore, recipe) -> None:
        await job_store.mark_failed("k1", "NormalizationError", "bad output")
        job = await job_store.mark_ready("k1", recipe)
        assert job.status == "READY"
        assert job.error is None


class TestReadyIsFinal:
    @pytest.mark.asyncio
    async def test_unforced_writes_are_no_ops(
        self, job_store: JobStore, supabase: MockSupabaseClient, recipe
    ) -> None:
        await job_store.mark_ready("k1", recipe, meta=JobMeta(model="gpt-4o-mini"))
        before = dict(supabase.rows()["k1"])

        assert (await job_store.mark_pending("k1")).status == "READY"
        assert (await job_store.mark_failed("k1", "NoContent", "empty")).status == "READY"
        other = recipe.model_copy(update={"title": "Something Else"})
        assert (await job_store.mark_ready("k1", other)).value.title == recipe.title

        assert supabase.rows()["k1"] == before

    @pytest.mark.asyncio
    async def test_forced_write_replaces_ready(self, job_store: JobStore, recipe) -> None:
        await job_store.mark_ready("k1", recipe)
        job = await job_store.mark_pending("k1", force=True)
        assert job.status == "PENDING"
        assert job.value is None

    @pytest.mark.asyncio
    async def test_guard_rejects_update_when_ready_lands_first(
        self, job_store: JobStore, supabase: MockSupabaseClient, recipe
    ) -> None:
        await job_store.mark_pending("k1")
        original_get = job_store.get

        async def stale_get(key):
            job = await original_get(key)
            # A concurrent writer completes the job right after our read
            supabase.rows()["k1"]["status"] = "READY"
            supabase.rows()["k1"]["value"] = recipe.model_dump(mode="json")
            job_store.get = original_get
            return job

        job_store.get = stale_get
        job = await job_store.mark_failed("k1", "NoContent", "empty")

        assert job.status == "READY"
        assert supabase.rows()["k1"]["error"] is None

    @settings(max_examples=30, deadline=None)
    @given(
        writes=st.lists(
            st.tuples(st.sampled_from(["PENDING", "READY", "FAILED"]), st.booleans()),
            min_size=1,
            max_size=8,
        )
    )
    def test_ready_never_regresses_without_force(self, writes) -> None:
        store = JobStore(MockSupabaseClient())
        recipe = Recipe.model_validate(RECIPE_ARGS)

        async def run() -> None:
            ready_seen = False
            for status, force in writes:
                job = await store.upsert(
                    "k",
                    status,
                    value=recipe if status == "READY" else None,
                    error=None,
                    force=force,
                )
                if force:
                    ready_seen = job.status == "READY"
                elif ready_seen:
                    assert job.status == "READY"
                    assert job.value is not None
                ready_seen = ready_seen or job.status == "READY"

        asyncio.run(run())


class TestInsertRace:
    @pytest.mark.asyncio
    async def test_unique_violation_retries_as_update(
        self, job_store: JobStore, supabase: MockSupabaseClient
    ) -> None:
        supabase.insert_conflicts = 1
        supabase.conflict_row = {"status": "PENDING", "meta": {"actor_run_id": "run-9"}}

        job = await job_store.mark_failed("k1", "NoContent", "empty", meta=JobMeta(caption="c"))

        assert job.status == "FAILED"
        assert job.meta.actor_run_id == "run-9"
        assert job.meta.caption == "c"

    @pytest.mark.asyncio
    async def test_unique_violation_against_ready_returns_winner(
        self, job_store: JobStore, supabase: MockSupabaseClient, recipe
    ) -> None:
        supabase.insert_conflicts = 1
        supabase.conflict_row = {"status": "READY", "value": recipe.model_dump(mode="json")}

        job = await job_store.mark_pending("k1")

        assert job.status == "READY"
        assert job.value.title == recipe.title


class TestDatastoreFailures:
    @pytest.mark.asyncio
    async def test_read_failure_is_not_swallowed(
        self, job_store: JobStore, supabase: MockSupabaseClient
    ) -> None:
        supabase.fail = True
        with pytest.raises(DatastoreError):
            await job_store.get("k1")

    @pytest.mark.asyncio
    async def test_write_failure_is_not_swallowed(
        self, job_store: JobStore, supabase: MockSupabaseClient
    ) -> None:
        await job_store.mark_pending("k1")
        supabase.fail = True
        with pytest.raises(DatastoreError):
            await job_store.mark_failed("k1", "NoContent", "empty")

    @pytest.mark.asyncio
    async def test_malformed_row(self, job_store: JobStore, supabase: MockSupabaseClient) -> None:
        supabase.rows()["k1"] = {"key": "k1", "status": "DONE"}
        with pytest.raises(DatastoreError):
            await job_store.get("k1")


class TestEventLoop:
    @pytest.mark.asyncio
    async def test_queries_run_off_the_event_loop_thread(
        self, job_store: JobStore, supabase: MockSupabaseClient, recipe
    ) -> None:
        await job_store.mark_pending("k1")
        await job_store.mark_ready("k1", recipe)

        assert supabase.calls == ["select", "insert", "select", "update"]
        assert supabase.threads
        assert threading.get_ident() not in supabase.threads
