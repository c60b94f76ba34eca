"""FastAPI application for the Sessions Service."""
from fastapi import FastAPI
from dotenv import load_dotenv

load_dotenv()

from slowapi.errors import RateLimitExceeded

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.sessions_service.routers import sessions_router


def create_app() -> FastAPI:
    """Create and configure the Sessions Service FastAPI app."""
    app = FastAPI(
        title="GymBuddz Sessions Service",
        version="0.1.0",
        description="Coach-member session negotiation and scheduling.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "sessions"}

    # Gateway: /api/v1/sessions/{path} → /sessions/{path}
    app.include_router(sessions_router)

    return app


app = create_app()
