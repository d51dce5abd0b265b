import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mathgen.api import history, problems, score
from mathgen.core.config import Settings, get_settings
from mathgen.core.datastore import Datastore
from mathgen.core.errors import GenerationError, InvalidGeneratedContent, PersistenceError
from mathgen.services.llm import OpenAITextGenerator, TextGenerator

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, **extra},
        headers=NO_STORE,
    )


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "issues": jsonable_encoder(exc.errors())},
            headers=NO_STORE,
        )

    @app.exception_handler(GenerationError)
    async def generation_failed(request: Request, exc: GenerationError):
        logger.error(f"{request.url.path}: generation failed: {exc!r}")
        return _error(503, "generation_failed", "Please try again.")

    @app.exception_handler(InvalidGeneratedContent)
    async def invalid_content(request: Request, exc: InvalidGeneratedContent):
        logger.error(
            f"{request.url.path}: invalid generated content ({exc.reason}); raw={exc.raw!r}"
        )
        return _error(
            502,
            "invalid_generated_content",
            "The generated content was not usable. Please try again.",
        )

    @app.exception_handler(PersistenceError)
    async def persistence_failed(request: Request, exc: PersistenceError):
        logger.error(f"{request.url.path}: persistence failed: {exc!r}")
        return _error(503, "persistence_failed", "Please try again.")

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception):
        logger.exception(f"{request.url.path}: unhandled error")
        return _error(500, "internal_error", "Something went wrong.")


def create_app(
    settings: Optional[Settings] = None,
    datastore: Optional[Datastore] = None,
    generator: Optional[TextGenerator] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.datastore.create_all()
        yield
        await app.state.datastore.dispose()

    app = FastAPI(title="Math Problem Generator", lifespan=lifespan)
    app.state.settings = settings
    app.state.datastore = datastore or Datastore(settings.database_url)
    app.state.generator = generator or OpenAITextGenerator.from_settings(settings)

    @app.middleware("http")
    async def disable_caching(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers.setdefault("Cache-Control", "no-store")
        return response

    register_exception_handlers(app)

    app.include_router(problems.router, prefix="/api")
    app.include_router(score.router, prefix="/api")
    app.include_router(history.router, prefix="/api")

    @app.get("/")
    def root():
        return {"message": "Math problem generator API"}

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()
