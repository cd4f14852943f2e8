from fastapi import APIRouter

from storefront.api.v1 import auth
from storefront.api.v1 import catalog
from storefront.api.v1 import cart
from storefront.api.v1 import intents
from storefront.api.v1 import wishlist
from storefront.core.metrics import snapshot as metrics_snapshot

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(catalog.router)
api_router.include_router(cart.router)
api_router.include_router(wishlist.router)
api_router.include_router(intents.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
def readiness() -> dict[str, str]:
    return {"status": "ready"}


@api_router.get("/metrics", tags=["metrics"])
def metrics() -> dict[str, int]:
    return metrics_snapshot()
