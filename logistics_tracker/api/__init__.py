"""
Site Logistics Tracker API Application Factory
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .assets import router as assets_router
from .waybills import router as waybills_router
from .returns import router as returns_router
from .checkouts import router as checkouts_router
from .sites import router as sites_router
from .directory import router as directory_router
from .reports import router as reports_router
from .admin import router as admin_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Site Logistics Tracker API",
        description="Asset inventory, waybills, quick checkouts and return reconciliation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(assets_router, prefix="/assets", tags=["Assets"])
    app.include_router(waybills_router, prefix="/waybills", tags=["Waybills"])
    app.include_router(returns_router, prefix="/returns", tags=["Returns"])
    app.include_router(checkouts_router, prefix="/checkouts", tags=["Quick Checkouts"])
    app.include_router(sites_router, prefix="/sites", tags=["Sites"])
    app.include_router(directory_router, prefix="/settings", tags=["Settings"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "logistics_tracker_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Site Logistics Tracker API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "assets": "/assets",
                "waybills": "/waybills",
                "returns": "/returns",
                "checkouts": "/checkouts",
                "sites": "/sites",
                "settings": "/settings",
                "reports": "/reports",
                "admin": "/admin",
            }
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8095, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "logistics_tracker.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
