import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mindfulness_app.api import ai_routes, fast_api
from mindfulness_app.api.session_gate import SessionGateMiddleware
from mindfulness_app.database.config.config import settings
from mindfulness_app.database.core.engine import init_db
from mindfulness_app.errors import AppError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database tables ready")
    yield


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Mindfulness Companion API", lifespan=lifespan)

    # Added first so CORS wraps it and redirects still carry CORS headers.
    app.add_middleware(SessionGateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.NEXT_PUBLIC_APP_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s", request.url.path)
        return JSONResponse({"error": "An unexpected error occurred"}, status_code=500)

    app.include_router(fast_api.router)
    app.include_router(ai_routes.router)

    @app.get("/")
    def read_root():
        return {"message": "Mindfulness Companion API running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
