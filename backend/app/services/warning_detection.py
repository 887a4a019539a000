"""Warning detection job: duplicate mappings across every lookup.

Invoked by the JobScheduler (or manually via POST /jobs/{name}/run).

Algorithm
---------
  1. Load (id, left, right) for every lookup value, grouped by lookup.
  2. Per lookup, group by left, by right and by the (left, right) pair
     (app.utils.duplicate_finder). Pair duplicates are HIGH; left/right
     duplicates are MEDIUM unless the row is already covered by a pair group.
  3. In one transaction, delete every warning of type "lookup" and insert the
     freshly computed set (full replace).

Each run is idempotent: unchanged data yields the same warnings, fixed data
makes its warnings disappear, and manually resolved warnings whose duplicate
still exists come back unresolved. If anything fails before the commit, the
previous run's warnings stay in place.

Single flight: an asyncio.Lock guards the process; on PostgreSQL an advisory
lock keyed on the job name guards across processes.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app.database import engine as default_engine
from app.models.data_warning import DataWarning
from app.repositories.lookup_repo import LookupRepo
from app.repositories.warning_repo import WarningRepo
from app.services.locks import release_job_lock, try_acquire_job_lock
from app.utils.duplicate_finder import find_lookup_duplicates

logger = logging.getLogger(__name__)

JOB_NAME = "warning-detection"
WARNING_TYPE_LOOKUP = "lookup"


class WarningDetectionJob:
    """
    Usage:
        job = WarningDetectionJob(engine)
        ok = await job.execute()
    """

    def __init__(self, engine: Optional[AsyncEngine] = None) -> None:
        self._engine = engine if engine is not None else default_engine
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._guard = asyncio.Lock()

    async def execute(self) -> bool:
        """Run one detection pass. Returns True on success, False if failed or skipped."""
        if self._guard.locked():
            logger.warning("Warning detection already running, skipping this run")
            return False

        async with self._guard:
            logger.info("Starting warning detection job")
            try:
                created = await self._run_single_flight()
            except Exception:
                logger.exception("Error in warning detection job")
                return False

        if created is None:
            return False
        logger.info("Warning detection job completed: %d warnings", created)
        return True

    async def _run_single_flight(self) -> Optional[int]:
        if self._engine.dialect.name != "postgresql":
            return await self.check_lookup_duplicates()

        async with self._engine.connect() as lock_conn:
            acquired = await try_acquire_job_lock(lock_conn, JOB_NAME)
            if not acquired:
                logger.warning("Warning detection lock held by another process, skipping")
                return None
            try:
                return await self.check_lookup_duplicates()
            finally:
                await release_job_lock(lock_conn, JOB_NAME)

    async def check_lookup_duplicates(self) -> int:
        """Recompute lookup warnings and replace the stored set. Returns the new count."""
        async with self._session_factory() as db:
            lookups = await LookupRepo.list_all(db)
            values = await LookupRepo.values_by_lookup(db)
            logger.info("Checking %d lookups for duplicates", len(lookups))

            warnings: list[DataWarning] = []
            for lookup in lookups:
                findings = find_lookup_duplicates(values.get(lookup.id, []))
                if findings:
                    logger.info(
                        "Lookup %s: %d duplicate findings", lookup.name, len(findings)
                    )
                warnings.extend(
                    DataWarning(
                        type=WARNING_TYPE_LOOKUP,
                        type_name=lookup.name,
                        type_id=lookup.id,
                        item_id=f.item_id,
                        left_duplicate=f.left_duplicate,
                        right_duplicate=f.right_duplicate,
                        left_right_duplicate=f.left_right_duplicate,
                        severity=f.severity.value,
                        details=f.details,
                    )
                    for f in findings
                )

            deleted = await WarningRepo.replace_type(db, WARNING_TYPE_LOOKUP, warnings)
            logger.info(
                "Replaced lookup warnings: %d removed, %d created", deleted, len(warnings)
            )
            return len(warnings)
