import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env from mathstreak/.env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from mathstreak.api import challenges, diamonds, health, premium, streaks  # noqa: E402
from mathstreak.core.config import settings, validate_config  # noqa: E402
from mathstreak.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from mathstreak.core.logging import configure_logging  # noqa: E402
from mathstreak.core.middleware.request_id import RequestIdMiddleware  # noqa: E402

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("mathstreak")
    logger.info("Starting mathstreak engine...", extra={"profile": settings.PROFILE})
    try:
        yield
    finally:
        logger.info("Stopping mathstreak engine...")


app = FastAPI(title="mathstreak - progression engine", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware, profile=settings.PROFILE)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(challenges.router, tags=["challenges"])
app.include_router(streaks.router, tags=["streaks"])
app.include_router(diamonds.router, tags=["diamonds"])
app.include_router(premium.router, tags=["premium"])
app.include_router(health.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mathstreak.main:app", host="0.0.0.0", port=8000, reload=settings.ENV == "development")
