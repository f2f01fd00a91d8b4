# discount_engine/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from discount_engine.core.config import LOG_LEVEL
from discount_engine.core.context import Collaborators
from discount_engine.core.db import init_models
from discount_engine.core.errors import (
    DiscountError,
    InvalidDataError,
    NotFoundError,
    NotAllowedError,
    DuplicateError,
)
from discount_engine.routers import discount_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidDataError: 400,
    NotAllowedError: 403,
    NotFoundError: 404,
    DuplicateError: 409,
}


async def handle_discount_error(request: Request, exc: DiscountError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status_code, content={"type": exc.type, "message": exc.message})


def create_app(collaborators: Collaborators, create_tables: bool = True) -> FastAPI:
    """
    Build the API. Region, product and customer lookups belong to the host
    application and are handed in through `collaborators`.
    """
    app = FastAPI(
        title="Discount Engine API",
        description="Discount eligibility and line item adjustments",
        version="0.1.0",
    )
    app.state.collaborators = collaborators

    # CORS setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # adjust for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DiscountError, handle_discount_error)

    # Health check endpoint
    @app.get("/", tags=["Health"])
    async def health_check():
        return {"status": "ok", "message": "Discount engine is running"}

    app.include_router(discount_router)

    if create_tables:
        @app.on_event("startup")
        async def on_startup():
            await init_models()
            logger.info("Discount tables ready")

    return app
