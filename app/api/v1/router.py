from fastapi import APIRouter, Depends
from app.api.deps import enforce_account_block
from app.api.v1 import admin, auth, health, users
from app.core.config import settings

api_router = APIRouter(prefix=settings.API_V1_PREFIX, dependencies=[Depends(enforce_account_block)])

api_router.include_router(health.router, tags=['health'])
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(admin.router)
