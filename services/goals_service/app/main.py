"""FastAPI application for the Goals Service."""
from fastapi import FastAPI
from dotenv import load_dotenv

load_dotenv()

from slowapi.errors import RateLimitExceeded

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.goals_service.routers import admin_goals_router, goals_router


def create_app() -> FastAPI:
    """Create and configure the Goals Service FastAPI app."""
    app = FastAPI(
        title="GymBuddz Goals Service",
        version="0.1.0",
        description="Gym goal voting and fundraising.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "goals"}

    # Member-facing routes
    # Gateway: /api/v1/goals/{path} → /goals/{path}
    app.include_router(goals_router)

    # Admin routes
    # Gateway: /api/v1/admin/goals/{path} → /admin/goals/{path}
    app.include_router(admin_goals_router)

    return app


app = create_app()
