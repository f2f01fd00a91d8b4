# discount_engine/routers/__init__.py

from .discount_router import router as discount_router

__all__ = [
    "discount_router",
]
