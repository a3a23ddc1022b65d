import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pms.config import settings
from pms.errors import PMSError

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "pms.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from pms.routers import availability, business_date, inventory, night_audit, overbooking, rates, room_blocks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: launch background scheduler
    scheduler = None
    if settings.scheduler_enabled:
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger

            scheduler = AsyncIOScheduler()

            async def _run_night_audit():
                if not settings.night_audit_auto_run:
                    return
                from pms.database import async_session_factory
                from pms.services.business_date_service import business_date_service
                from pms.services.night_audit_service import night_audit_service
                async with async_session_factory() as db:
                    business_date = await business_date_service.get(db)
                    try:
                        result = await night_audit_service.run_night_audit(db, business_date)
                        logger.info(f"Scheduled night audit closed {business_date}, now {result['next_business_date']}")
                    except PMSError as e:
                        logger.error(f"Scheduled night audit for {business_date} failed: {e.message}")

            scheduler.add_job(
                _run_night_audit,
                CronTrigger(hour=settings.night_audit_hour, minute=settings.night_audit_minute),
                id="night_audit",
            )

            scheduler.start()
            logger.info("Background scheduler started")
        except Exception as e:
            logger.error(f"Scheduler failed to start: {e}")

    # Auto-seed rate plans/room types/inventory if DB is empty (dev convenience)
    if settings.seed_on_startup:
        try:
            from pms.seed import seed
            await seed()
        except Exception as e:
            logger.warning(f"Auto-seed skipped: {e}")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


app = FastAPI(
    title="Hotel PMS",
    description="Availability, rates and night audit engine",
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


@app.exception_handler(PMSError)
async def pms_error_handler(request: Request, exc: PMSError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.__class__.__name__},
    )


app.include_router(business_date.router, prefix="/api/business-date", tags=["business-date"])
app.include_router(availability.router, prefix="/api/availability", tags=["availability"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(rates.router, prefix="/api/rates", tags=["rates"])
app.include_router(overbooking.router, prefix="/api/overbooking", tags=["overbooking"])
app.include_router(room_blocks.router, prefix="/api/room-blocks", tags=["room-blocks"])
app.include_router(night_audit.router, prefix="/api/night-audit", tags=["night-audit"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "pms"}
