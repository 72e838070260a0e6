import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .config import settings
from .db import SessionLocal, ensure_schema
from .errors import SchedulingError
from .routers import api_admin, api_streams
from .services.plans import seed_default_plans

# --- Logging configuration ---
_level = logging.DEBUG if getattr(settings, "DEBUG", False) else logging.INFO
logging.basicConfig(
    level=_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# Align uvicorn loggers with our level (useful under Docker Compose)
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).setLevel(_level)
logger = logging.getLogger("app.startup")
logger.info("Starting %s (DEBUG=%s, QUOTA_POLICY=%s)", settings.APP_NAME, settings.DEBUG, settings.QUOTA_POLICY)

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        f"{settings.APP_NAME}: stream scheduling and viewer-boost subscriptions.\n\n"
        "Use the 'streams-api' tag for streamer endpoints and 'admin-api' for plan, "
        "subscription and payment administration."
    ),
    openapi_tags=[
        {"name": "streams-api", "description": "Planned streams, quota and registration. Endpoints under /api/v1."},
        {"name": "admin-api", "description": "Plan, subscription and payment administration. Endpoints under /api/v1/admin."},
    ],
)

@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)

@app.on_event("startup")
def startup_event():
    """Runs startup tasks, like ensuring the schema and the stock plans exist."""
    logger.info("Running startup tasks...")
    ensure_schema()

    if settings.SEED_DEFAULT_PLANS:
        db = SessionLocal()
        try:
            seed_default_plans(db)
        finally:
            db.close()

    logger.info("Startup tasks complete.")


app.include_router(api_streams.router)
app.include_router(api_admin.router)

@app.get("/healthz")
def healthz():
    return {"status": "ok"}


# Convenience: API Swagger shortcut
@app.get("/api/v1/docs", include_in_schema=False)
def api_docs_redirect():
    return RedirectResponse(url="/docs#/streams-api")
