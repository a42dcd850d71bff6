import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
_log_format = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

logging.basicConfig(
    level=_log_level,
    format=_log_format,
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "captrack.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Operator channel: audit and commit failures get their own file as well
_operator_handler = RotatingFileHandler(
    _LOG_DIR / "operator.log",
    maxBytes=10 * 1024 * 1024,
    backupCount=5,
    encoding="utf-8",
)
_operator_handler.setFormatter(logging.Formatter(_log_format, datefmt="%Y-%m-%d %H:%M:%S"))
logging.getLogger("captrack.operator").addHandler(_operator_handler)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from app.routers import assignments, audit, claims, notifications, reports, reviews

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Seed demo projects/consultants/roles if the DB is empty (dev convenience)
    if settings.seed_on_startup:
        try:
            from app.seed import seed
            await seed()
        except Exception as e:
            logger.warning(f"Auto-seed skipped: {e}")

    yield

    # Shutdown: release provider connections
    from app.services.quote_search_client import quote_search_client
    from app.services.storage_client import file_storage

    await quote_search_client.close()
    close = getattr(file_storage, "close", None)
    if close is not None:
        await close()
    logger.info("Provider clients closed")


app = FastAPI(
    title="CapTrack",
    description="Travel price caps and expense reimbursement",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(assignments.router, prefix="/api/assignments", tags=["assignments"])
app.include_router(claims.router, prefix="/api/claims", tags=["claims"])
app.include_router(reviews.router, prefix="/api/claims", tags=["reviews"])
app.include_router(claims.attachments_router, prefix="/api/attachments", tags=["claims"])
app.include_router(audit.router, prefix="/api/audit", tags=["audit"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "captrack"}
