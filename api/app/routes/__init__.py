from fastapi import APIRouter, FastAPI

from .matching import router as matching_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(matching_router, tags=["matching"])


__all__ = ["include_modular_routers", "APIRouter"]
