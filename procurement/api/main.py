"""HTTP surface for the approval workflow."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from procurement import __version__
from procurement.api.routers import approvals
from procurement.core.config import Settings, get_settings


def create_app(settings: Settings) -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        description="Tiered approval workflow for purchase orders and service requisitions",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Browsers only reach the API directly in debug deployments
    if settings.debug:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    application.include_router(approvals.router, prefix="/api")

    @application.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @application.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": application.docs_url,
        }

    return application


app = create_app(get_settings())
