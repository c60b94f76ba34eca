"""Goals service routers."""

from services.goals_service.routers.admin import router as admin_goals_router
from services.goals_service.routers.member import router as goals_router

__all__ = [
    "admin_goals_router",
    "goals_router",
]
