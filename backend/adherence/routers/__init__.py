"""API routers."""
from .internal import router as internal_router
from .push import router as push_router
from .reminders import router as reminders_router

__all__ = ["internal_router", "push_router", "reminders_router"]
