"""
API route controllers for LeadFlow.

Contains FastAPI routers for different endpoints.
Routes handle HTTP requests and delegate to services for business logic.
"""

from .health import router as health_router
from .leads import router as leads_router
from .tasks import router as tasks_router
from .outcomes import router as outcomes_router

__all__ = [
    "health_router",
    "leads_router",
    "tasks_router",
    "outcomes_router",
]
