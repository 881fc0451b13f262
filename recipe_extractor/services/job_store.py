"""Job store backed by a Supabase table."""

import asyncio
import logging
from typing import Any, Optional

from recipe_extractor.config import Settings
from recipe_extractor.models.job import Job, JobError, JobMeta, JobState, merge_meta, utcnow
from recipe_extractor.models.recipe import Recipe
from recipe_extractor.utils.errors import DatastoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _is_unique_violation(error: Exception) -> bool:
    return str(getattr(error, "code", "") or "") == UNIQUE_VIOLATION


class JobStore:
    """Persistent map from canonical video key to Job.

    Every write is a merge: ``meta`` is combined field by field with the
    stored value, and a stored READY row is never overwritten unless the
    write is forced.
    """

    def __init__(self, supabase_client: Any, table: str = "cache") -> None:
        """
        Initialize the JobStore.

        Args:
            supabase_client: Supabase client instance
            table: Name of the cache table
        """
        self.supabase = supabase_client
        self.table = table

    async def get(self, key: str) -> Optional[Job]:
        """
        Retrieve a job by key.

        Args:
            key: Canonical video key

        Returns:
            Job if found, None otherwise

        Raises:
            DatastoreError: If the read fails
        """
        try:
            query = self.supabase.table(self.table).select("*").eq("key", key)
            result = await asyncio.to_thread(query.execute)
        except Exception as e:
            raise DatastoreError(f"Failed to read job {key}: {e}")

        if not result.data:
            return None
        return self._row_to_job(result.data[0])

    async def upsert(
        self,
        key: str,
        status: JobState,
        value: Optional[Recipe] = None,
        meta: Optional[JobMeta] = None,
        error: Optional[JobError] = None,
        force: bool = False,
    ) -> Job:
        """
        Merge-write a job and return the row as it stands afterwards.

        Args:
            key: Canonical video key
            status: New status
            value: Recipe (kept only for READY)
            meta: Meta to merge into the stored meta
            error: Error (kept only for FAILED)
            force: Allow overwriting a READY row

        Returns:
            The stored Job after the write. When a READY row blocks the
            write, that READY row is returned unchanged.

        Raises:
            DatastoreError: If the store cannot be read or written
        """
        stored = await self.get(key)
        if stored is not None and stored.status == "READY" and not force:
            logger.info(f"Job {key} already READY, skipping {status} write")
            return stored

        if stored is None:
            row = self._build_row(key, status, value, merge_meta(None, meta), error)
            written = await self._insert(row)
            if written is None:
                # Lost the insert race; retry once as a guarded update
                logger.info(f"Job {key} was inserted concurrently, retrying as update")
                stored = await self.get(key)
                if stored is None:
                    raise DatastoreError(f"Job {key} vanished after a unique violation")
                if stored.status == "READY" and not force:
                    return stored
                row = self._build_row(key, status, value, merge_meta(stored.meta, meta), error)
                written = await self._update(key, row, force)
        else:
            row = self._build_row(key, status, value, merge_meta(stored.meta, meta), error)
            written = await self._update(key, row, force)

        if written is not None:
            logger.info(f"Job {key} -> {written.status}")
            return written

        # Guard rejected the write: a concurrent writer reached READY first
        current = await self.get(key)
        if current is None:
            raise DatastoreError(f"Job {key} missing after a rejected update")
        logger.info(f"Job {key} write rejected, stored status is {current.status}")
        return current

    async def mark_pending(self, key: str, meta: Optional[JobMeta] = None, force: bool = False) -> Job:
        return await self.upsert(key, "PENDING", meta=meta, force=force)

    async def mark_ready(
        self, key: str, value: Recipe, meta: Optional[JobMeta] = None, force: bool = False
    ) -> Job:
        return await self.upsert(key, "READY", value=value, meta=meta, force=force)

    async def mark_failed(
        self,
        key: str,
        error_type: str,
        message: str,
        meta: Optional[JobMeta] = None,
        force: bool = False,
    ) -> Job:
        error = JobError(type=error_type, message=message)
        return await self.upsert(key, "FAILED", error=error, meta=meta, force=force)

    def _build_row(
        self,
        key: str,
        status: JobState,
        value: Optional[Recipe],
        meta: JobMeta,
        error: Optional[JobError],
    ) -> dict[str, Any]:
        return {
            "key": key,
            "status": status,
            "value": value.model_dump(mode="json") if status == "READY" and value else None,
            "meta": meta.model_dump(mode="json", exclude_none=True),
            "error": error.model_dump() if status == "FAILED" and error else None,
            "updated_at": utcnow().isoformat(),
        }

    async def _insert(self, row: dict[str, Any]) -> Optional[Job]:
        """Insert a new row; None when another writer inserted the key first."""
        try:
            result = await asyncio.to_thread(self.supabase.table(self.table).insert(row).execute)
        except Exception as e:
            if _is_unique_violation(e):
                return None
            raise DatastoreError(f"Failed to insert job {row['key']}: {e}")

        if not result.data:
            raise DatastoreError(f"Failed to insert job {row['key']}")
        return self._row_to_job(result.data[0])

    async def _update(self, key: str, row: dict[str, Any], force: bool) -> Optional[Job]:
        """Update an existing row; None when the READY guard rejected it."""
        try:
            query = self.supabase.table(self.table).update(row).eq("key", key)
            if not force:
                query = query.neq("status", "READY")
            result = await asyncio.to_thread(query.execute)
        except Exception as e:
            raise DatastoreError(f"Failed to update job {key}: {e}")

        if not result.data:
            return None
        return self._row_to_job(result.data[0])

    def _row_to_job(self, row: dict[str, Any]) -> Job:
        try:
            return Job.model_validate(
                {
                    "key": row["key"],
                    "status": row["status"],
                    "value": row.get("value"),
                    "meta": row.get("meta") or {},
                    "error": row.get("error"),
                    "updated_at": row.get("updated_at") or utcnow(),
                }
            )
        except (KeyError, ValueError) as e:
            raise DatastoreError(f"Malformed job row: {e}")


def create_job_store(settings: Settings) -> JobStore:
    """
    Create a JobStore using application settings.

    Returns:
        Configured JobStore instance
    """
    from supabase import create_client

    supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return JobStore(supabase_client=supabase_client, table=settings.cache_table)
