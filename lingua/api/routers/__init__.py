from .catalog_router import router as catalog_router
from .session_router import router as session_router
from .vocabulary_router import router as vocabulary_router

__all__ = ["catalog_router", "session_router", "vocabulary_router"]
