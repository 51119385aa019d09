from .chat import router as chat_router
from .chat import validation_exception_handler

__all__ = ["chat_router", "validation_exception_handler"]
