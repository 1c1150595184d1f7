"""Main FastAPI application for the learning buddy."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from lernbuddy.config import settings

# Configure logging to output to stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

from lernbuddy import __version__
from lernbuddy.models import init_db
from lernbuddy.routers import chat_router, profiles_router, progress_router, tasks_router
from lernbuddy.routers.chat import SESSION_HEADER, close_gateway_client, invalid_chat_request
from lernbuddy.routers.tasks import close_task_simplifier


def check_api_keys() -> None:
    """Log which upstream credentials are configured."""
    logger.info(f"[Config] Database URL: {settings.database_url}")
    logger.info(f"[Config] LLM gateway: {settings.llm_gateway_url} (model {settings.model_buddy_chat})")

    if settings.llm_gateway_api_key:
        masked = settings.llm_gateway_api_key[:8] + "..." + settings.llm_gateway_api_key[-4:]
        logger.info(f"[Config] LLM gateway API key: {masked}")
    else:
        logger.warning("LLM_GATEWAY_API_KEY is not set! The buddy cannot answer.")

    if settings.weakness_classifier == "model" and not settings.anthropic_api_key:
        logger.warning("WEAKNESS_CLASSIFIER=model needs ANTHROPIC_API_KEY")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    await init_db()
    check_api_keys()

    yield

    await close_gateway_client()
    await close_task_simplifier()


app = FastAPI(
    title="Lernbuddy",
    description="Backend of a chat-based learning companion for school students",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER],
)

app.include_router(chat_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(progress_router, prefix="/api")
app.include_router(profiles_router, prefix="/api")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """The chat client reads {"error": ...}; other routes keep FastAPI's 422 detail."""
    if request.url.path.endswith("/buddy-chat"):
        return invalid_chat_request(exc)
    return await request_validation_exception_handler(request, exc)


@app.get("/")
async def root():
    """Root endpoint returning API info."""
    return {
        "name": "Lernbuddy API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lernbuddy.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
