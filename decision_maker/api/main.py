from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from decision_maker.api import panels, proxy
from decision_maker.api.dependencies import build_services
from decision_maker.api.errors import register_error_handlers
from decision_maker.core.logging import setup_logging
from decision_maker.db.session import dispose_engine, get_sessionmaker


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if not hasattr(app.state, "services"):
        app.state.services = build_services()
    yield
    await dispose_engine()


def create_app(services=None) -> FastAPI:
    app = FastAPI(
        title="Decision Maker API",
        description="Proxies and panels for deciding what to watch, hear, eat and do",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    register_error_handlers(app)
    app.include_router(proxy.router)
    app.include_router(panels.router)

    @app.get("/health")
    async def health():
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready():
        """Readiness check that verifies database connectivity when one is configured."""
        factory = get_sessionmaker()
        if factory is None:
            return {"status": "ready", "database": "not_configured"}
        try:
            async with factory() as session:
                await session.execute(text("SELECT 1"))
            return {"status": "ready", "database": "connected"}
        except Exception as e:
            return {"status": "not_ready", "database": "disconnected", "error": str(e)}

    return app


app = create_app()
