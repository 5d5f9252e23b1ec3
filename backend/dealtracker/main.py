from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from dealtracker import __version__
from dealtracker.api import alerts, deals, health, jobs, push, rules
from dealtracker.config import get_settings
from dealtracker.database import init_db
from dealtracker.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Flight Deals Tracker")

    if settings.database_url.startswith("sqlite"):
        logger.info("SQLite detected - creating tables if needed")
        init_db()

    if settings.scheduler_enabled:
        try:
            start_scheduler()
            logger.info("✅ APScheduler started")
        except Exception as e:
            logger.error(f"❌ Scheduler startup failed: {e}")
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    logger.info("🛑 Shutting down Flight Deals Tracker")
    try:
        stop_scheduler()
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Flight Deals Tracker",
    description="Monitors flight/cruise offers against user rules and sends deal notifications",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(rules.router, prefix="/api/rules", tags=["rules"])
app.include_router(deals.router, prefix="/api/deals", tags=["deals"])
app.include_router(alerts.router, prefix="/api/alerts", tags=["alerts"])
app.include_router(push.router, prefix="/api/push", tags=["push"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
