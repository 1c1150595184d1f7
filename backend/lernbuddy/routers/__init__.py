"""API routers for the learning buddy."""

from lernbuddy.routers.chat import router as chat_router
from lernbuddy.routers.profiles import router as profiles_router
from lernbuddy.routers.progress import router as progress_router
from lernbuddy.routers.tasks import router as tasks_router

__all__ = [
    "chat_router",
    "profiles_router",
    "progress_router",
    "tasks_router",
]
