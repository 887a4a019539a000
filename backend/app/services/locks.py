"""PostgreSQL advisory lock helpers for single-flight background jobs.

Advisory locks are session-level: they survive COMMIT/ROLLBACK inside the
critical section and are released when the connection is closed or explicitly
unlocked.  We hold them on a *dedicated* AsyncConnection (not a pooled
session) so the lock lifetime is exactly the critical section, even though
the job's own session commits in between.

Usage pattern
-------------
    async with engine.connect() as lock_conn:
        acquired = await try_acquire_job_lock(lock_conn, "warning-detection")
        if not acquired:
            return  # another process is running the job
        try:
            # ... job body using a separate AsyncSession ...
        finally:
            await release_job_lock(lock_conn, "warning-detection")
"""
import hashlib

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection


def derive_job_lock_key(job_name: str) -> int:
    """Return a stable positive int64 lock key for a job name.

    Python's hash() is salted per process, so the key is taken from the first
    eight bytes of a SHA-256 digest instead and masked to 63 bits.
    """
    digest = hashlib.sha256(job_name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & 0x7FFFFFFFFFFFFFFF


async def try_acquire_job_lock(conn: AsyncConnection, job_name: str) -> bool:
    """Attempt to acquire a session-level advisory lock; return True if acquired.

    Non-blocking: returns False immediately if another session holds it.
    """
    key = derive_job_lock_key(job_name)
    result = await conn.execute(
        text("SELECT pg_try_advisory_lock(:k)"), {"k": key}
    )
    return bool(result.scalar_one())


async def release_job_lock(conn: AsyncConnection, job_name: str) -> None:
    key = derive_job_lock_key(job_name)
    await conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": key})
