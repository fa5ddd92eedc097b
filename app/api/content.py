from fastapi import APIRouter, Depends

from app.api.deps import get_db
from app.core.security import require_role
from app.models.db_models import UserRole
from app.models.schemas import CityUpdate, ServiceUpdate
from app.services import content_service
from app.services.auth_service import Identity
from app.services.db_service import Database

router = APIRouter()


@router.get("/cities")
async def list_cities(db: Database = Depends(get_db)):
    cities = await content_service.list_cities(db)
    return {"cities": [c.to_json() for c in cities]}


@router.get("/cities/{slug}")
async def get_city(slug: str, db: Database = Depends(get_db)):
    city = await content_service.get_city(db, slug)
    return {"city": city.to_json()}


@router.patch("/cities/{slug}")
async def update_city(
    slug: str,
    req: CityUpdate,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    db: Database = Depends(get_db),
):
    city = await content_service.update_city(db, slug, req.changes())
    return {"city": city.to_json()}


@router.get("/services")
async def list_services(db: Database = Depends(get_db)):
    services = await content_service.list_services(db)
    return {"services": [s.to_json() for s in services]}


@router.get("/services/{slug}")
async def get_service(slug: str, db: Database = Depends(get_db)):
    service = await content_service.get_service(db, slug)
    return {"service": service.to_json()}


@router.patch("/services/{slug}")
async def update_service(
    slug: str,
    req: ServiceUpdate,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    db: Database = Depends(get_db),
):
    service = await content_service.update_service(db, slug, req.changes())
    return {"service": service.to_json()}


@router.get("/paths")
async def static_paths(db: Database = Depends(get_db)):
    """Slugs for pre-rendering the city, service and city+service landing pages."""
    return {
        "cities": await content_service.get_city_slugs(db),
        "services": await content_service.get_service_slugs(db),
        "combinations": await content_service.get_city_service_paths(db),
    }
