from fastapi import APIRouter

from app.api.routes import (
    assumptions,
    audit,
    categories,
    csv_import,
    dashboard,
    exports,
    farms,
    financial,
    gl,
    health,
    inventory,
    ws,
)


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(farms.router)
api_router.include_router(assumptions.router)
api_router.include_router(categories.router)
api_router.include_router(gl.router)
api_router.include_router(financial.router)
api_router.include_router(csv_import.router)
api_router.include_router(inventory.router)
api_router.include_router(dashboard.router)
api_router.include_router(exports.router)
api_router.include_router(audit.router)
api_router.include_router(ws.router)
