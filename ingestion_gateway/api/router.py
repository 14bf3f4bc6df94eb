from fastapi import APIRouter

from ingestion_gateway.api.endpoints import ingestion

api_router = APIRouter()
api_router.include_router(ingestion.router, prefix="/ingestion", tags=["ingestion"])
