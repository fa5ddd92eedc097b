"""
Reference data for the marketing pages: cities, services and their content
blocks. Reads go through the store cache (keyed by context label) because
several page sections ask for the same row during one render; writes drop
the cached entries of the table they touch.
"""

from typing import Any, Dict, List, Optional

from supabase import AsyncClient

from app.core.errors import AppError, ErrorCode
from app.models.db_models import City, Content, Service
from app.services.db_service import Database, first_row, partial_update, rows

# Cached entries that combine both tables
PATHS_CACHE_PREFIX = "paths:"


async def _content_for(client: AsyncClient, content_type: str, slug: str) -> Optional[Content]:
    response = await client.table("content")\
        .select("*")\
        .eq("type", content_type)\
        .eq("slug", slug)\
        .execute()
    row = first_row(response)
    return Content.model_validate(row) if row else None


async def list_cities(db: Database) -> List[City]:
    async def operation(client: AsyncClient):
        response = await client.table("cities").select("*").eq("is_active", True).order("name").execute()
        return [City.model_validate(row) for row in rows(response)]

    return await db.query(operation, context="cities:list", retries=2, cache=True)


async def list_services(db: Database) -> List[Service]:
    async def operation(client: AsyncClient):
        response = await client.table("services").select("*").eq("is_active", True).order("name").execute()
        return [Service.model_validate(row) for row in rows(response)]

    return await db.query(operation, context="services:list", retries=2, cache=True)


async def get_city(db: Database, slug: str) -> City:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("cities").select("*").eq("slug", slug).execute())
        if not row:
            raise AppError("City not found", ErrorCode.NOT_FOUND, 404, {"slug": slug})
        content = await _content_for(client, "city", slug)
        return City.model_validate({
            **row,
            "content": content.data if content else None,
            "seo": content.metadata if content else None,
        })

    return await db.query(operation, context=f"cities:{slug}", retries=2, cache=True)


async def get_service(db: Database, slug: str) -> Service:
    async def operation(client: AsyncClient):
        row = first_row(await client.table("services").select("*").eq("slug", slug).execute())
        if not row:
            raise AppError("Service not found", ErrorCode.NOT_FOUND, 404, {"slug": slug})
        content = await _content_for(client, "service", slug)
        return Service.model_validate({
            **row,
            "content": content.data if content else None,
            "seo": content.metadata if content else None,
        })

    return await db.query(operation, context=f"services:{slug}", retries=2, cache=True)


async def get_city_slugs(db: Database) -> List[str]:
    async def operation(client: AsyncClient):
        response = await client.table("cities").select("slug").eq("is_active", True).execute()
        slugs = [row["slug"] for row in rows(response)]
        if not slugs:
            raise AppError("No cities found", ErrorCode.NOT_FOUND, 404)
        return slugs

    return await db.query(operation, context="cities:slugs", retries=2, cache=True)


async def get_service_slugs(db: Database) -> List[str]:
    async def operation(client: AsyncClient):
        response = await client.table("services").select("slug").eq("is_active", True).execute()
        slugs = [row["slug"] for row in rows(response)]
        if not slugs:
            raise AppError("No services found", ErrorCode.NOT_FOUND, 404)
        return slugs

    return await db.query(operation, context="services:slugs", retries=2, cache=True)


async def get_city_service_paths(db: Database) -> List[Dict[str, str]]:
    """Every active (city, service) pair, for pre-rendering landing pages."""
    hit, value = db.cache.lookup(f"{PATHS_CACHE_PREFIX}city-service")
    if hit:
        return value

    cities = await get_city_slugs(db)
    services = await get_service_slugs(db)
    paths = [{"city": city, "service": service} for city in cities for service in services]
    db.cache.set(f"{PATHS_CACHE_PREFIX}city-service", paths)
    return paths


async def update_city(db: Database, slug: str, fields: Dict[str, Any]) -> City:
    row = await _update_reference(db, "cities", slug, fields, entity="City")
    return City.model_validate(row)


async def update_service(db: Database, slug: str, fields: Dict[str, Any]) -> Service:
    row = await _update_reference(db, "services", slug, fields, entity="Service")
    return Service.model_validate(row)


async def _update_reference(db: Database, table: str, slug: str, fields: Dict[str, Any], entity: str) -> dict:
    if "slug" in fields:
        raise AppError(f"{entity} slug cannot be changed", ErrorCode.VALIDATION_ERROR, 400)

    async def lookup(client: AsyncClient):
        row = first_row(await client.table(table).select("id").eq("slug", slug).execute())
        if not row:
            raise AppError(f"{entity} not found", ErrorCode.NOT_FOUND, 404, {"slug": slug})
        return row["id"]

    row_id = await db.query(lookup, context=f"lookup-{table}-id", retries=2)
    row = await partial_update(db, table, row_id, fields, entity=entity, context=f"update-{table}", retries=1)

    db.cache.invalidate(f"{table}:")
    db.cache.invalidate(PATHS_CACHE_PREFIX)
    return row
