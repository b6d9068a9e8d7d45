import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from . import models  # noqa: F401  registers tables on Base.metadata
from .config import CORS_ALLOWED_ORIGINS, DB_CONNECT_ATTEMPTS, DB_CONNECT_DELAY_SECONDS, DEV_MODE
from .database import Base, SessionLocal, engine
from .routes import include_modular_routers
from .services.errors import MatchingError

logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Stable Match API")
include_modular_routers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MatchingError)
def handle_matching_error(request: Request, exc: MatchingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[MATCHING] %s %s failed: %s", request.method, request.url.path, exc.message)
    content = {"success": False, "error": exc.message}
    if DEV_MODE and exc.__cause__ is not None:
        content["detail"] = str(exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content=content)


def wait_for_db(max_attempts: int = DB_CONNECT_ATTEMPTS, delay_seconds: float = DB_CONNECT_DELAY_SECONDS) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


def init_schema() -> None:
    Base.metadata.create_all(bind=engine)


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    init_schema()
