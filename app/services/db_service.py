import asyncio
from asyncio import sleep
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, AsyncClientOptions, create_async_client

from app.core.cache import TTLCache
from app.core.config import Settings
from app.core.errors import AppError, ErrorCode
from app.core.logger import logger

T = TypeVar("T")

Operation = Callable[[AsyncClient], Awaitable[T]]

BACKOFF_BASE_SECONDS = 1.0

# SQLSTATE codes worth another attempt: serialization failure, deadlock, admin shutdown
TRANSIENT_SQLSTATES = {"40001", "40P01", "57P01", "57P02", "57P03"}


def is_transient(exc: BaseException) -> bool:
    """
    Only connection-level trouble is retried. Constraint violations, bad input
    and our own AppErrors fail the same way every time.
    """
    if isinstance(exc, AppError):
        return False
    if isinstance(exc, (ConnectionError, TimeoutError, httpx.TransportError)):
        return True
    if isinstance(exc, APIError):
        code = exc.code or ""
        return code.startswith("08") or code in TRANSIENT_SQLSTATES
    return False


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    context: str,
    retries: int = 1,
) -> T:
    """
    Runs `operation` up to `retries` attempts in total, sleeping 1s, 2s, 4s...
    between attempts. Failures come out normalized and tagged with `context`.
    """
    attempts = max(1, retries)
    for attempt in range(attempts):
        try:
            result = await operation()
            if attempt > 0:
                logger.info(f"✅ {context} succeeded on attempt {attempt + 1}")
            return result
        except Exception as e:
            if attempt == attempts - 1 or not is_transient(e):
                raise AppError.from_database_error(e).tag(context) from e
            delay = BACKOFF_BASE_SECONDS * 2 ** attempt
            logger.warning(f"⚠️ {context} failed (attempt {attempt + 1}/{attempts}): {e}. Retrying in {delay:.0f}s")
            await sleep(delay)

    raise AppError("Query failed after retries", ErrorCode.DATABASE_ERROR).tag(context)


class Database:
    """
    Store handle: one Supabase client, a bounded number of in-flight queries
    and the reference-data cache. Built once by the app lifespan.
    """

    def __init__(self, client: AsyncClient, pool_size: int = 10, cache_ttl: float = 300):
        self.client = client
        self.pool_size = pool_size
        self.cache = TTLCache(cache_ttl)
        self._slots = asyncio.Semaphore(pool_size)

    @classmethod
    async def connect(cls, settings: Settings) -> "Database":
        key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_KEY
        options = AsyncClientOptions(
            postgrest_client_timeout=settings.DB_TIMEOUT,
            auto_refresh_token=False,
            persist_session=False,
        )
        client = await create_async_client(settings.SUPABASE_URL, key, options=options)
        logger.info(f"✅ Supabase store client initialized (pool size {settings.DB_POOL_SIZE})")
        return cls(client, pool_size=settings.DB_POOL_SIZE, cache_ttl=settings.REFERENCE_CACHE_TTL)

    async def close(self):
        self.cache.invalidate()
        await self.client.postgrest.aclose()
        logger.info("🛑 Supabase store client closed")

    async def query(
        self,
        operation: Operation,
        *,
        context: str,
        retries: int = 1,
        cache: bool = False,
    ) -> Any:
        if cache:
            hit, value = self.cache.lookup(context)
            if hit:
                return value

        async def attempt():
            async with self._slots:
                return await operation(self.client)

        result = await execute_with_retry(attempt, context=context, retries=retries)

        if cache:
            self.cache.set(context, result)
        return result

    async def check_connection(self, retries: int = 3) -> bool:
        async def ping(client: AsyncClient):
            await client.table("users").select("id").limit(1).execute()
            return True

        return await self.query(ping, context="database-connection", retries=retries)


def rows(response: Any) -> list:
    return list(response.data or [])


def first_row(response: Any) -> Optional[dict]:
    data = rows(response)
    return data[0] if data else None


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def partial_update(
    db: Database,
    table: str,
    row_id: str,
    fields: Dict[str, Any],
    *,
    entity: str,
    context: str,
    retries: int = 1,
    expected_updated_at: Optional[str] = None,
    extra_filters: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Field-level merge: only the keys in `fields` change, `updated_at` is stamped
    and the post-update row comes back. With `expected_updated_at` (or any
    `extra_filters`) the update only applies if the row still matches, and a
    row that exists but no longer matches raises a 409.
    """
    changes = dict(fields)
    changes["updated_at"] = utcnow_iso()
    guards = dict(extra_filters or {})
    if expected_updated_at:
        guards["updated_at"] = expected_updated_at

    async def operation(client: AsyncClient):
        builder = client.table(table).update(changes).eq("id", row_id)
        for column, value in guards.items():
            builder = builder.eq(column, value)
        row = first_row(await builder.execute())
        if row:
            return row

        if guards:
            existing = first_row(await client.table(table).select("id").eq("id", row_id).execute())
            if existing:
                raise AppError(
                    f"{entity} was modified by another request",
                    ErrorCode.VALIDATION_ERROR,
                    409,
                    {"id": row_id, "expected": guards},
                )
        raise AppError(f"{entity} not found", ErrorCode.NOT_FOUND, 404, {"id": row_id})

    return await db.query(operation, context=context, retries=retries)
