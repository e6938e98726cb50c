"""
NetScope Telemetry - Main Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select
from netscope.config import settings
from netscope.database import AsyncSessionLocal, init_db
from netscope.models.alarm import AlarmRule
from netscope.routers import devices, alarms, metrics, system
from netscope.services import aggregation
from netscope.services.alarm_engine import AlarmEngine
from netscope.services.collector import MetricCollector
from netscope.services.poll_scheduler import PollingScheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone="UTC")

DEFAULT_RULES = [
    {"name": "High CPU", "metric_type": "cpu", "threshold_warning": 80, "threshold_critical": 90,
     "description": "CPU utilization above threshold"},
    {"name": "High Memory", "metric_type": "memory", "threshold_warning": 85, "threshold_critical": 95,
     "description": "Memory utilization above threshold"},
    {"name": "High Bandwidth Utilization", "metric_type": "bandwidth_util",
     "threshold_warning": 80, "threshold_critical": 95,
     "description": "Interface utilization above threshold"},
    {"name": "High Temperature", "metric_type": "temperature", "threshold_warning": 60,
     "threshold_critical": 75, "duration_seconds": 120,
     "description": "Device temperature above threshold for two minutes"},
    {"name": "Disk Space Low", "metric_type": "disk_usage", "threshold_warning": 85, "threshold_critical": 95,
     "description": "Disk usage above threshold"},
]


async def create_default_data():
    """Seed the default alarm rules on a fresh install."""
    async with AsyncSessionLocal() as db:
        existing = await db.execute(select(AlarmRule.id).limit(1))
        if existing.first() is not None:
            return
        for rule in DEFAULT_RULES:
            db.add(AlarmRule(condition_operator="gt", apply_to_all=True, is_enabled=True, **rule))
        await db.commit()
        logger.info(f"Created {len(DEFAULT_RULES)} default alarm rules")


async def scheduled_hourly_aggregation():
    """Roll the previous hour of raw samples into metrics_hourly."""
    try:
        async with AsyncSessionLocal() as db:
            await aggregation.aggregate_last_hour(db)
    except Exception as e:
        logger.error(f"Hourly aggregation job failed: {e}")


async def scheduled_daily_tasks(alarm_engine: AlarmEngine):
    """Daily rollup, retention cleanup and old alarm pruning."""
    try:
        async with AsyncSessionLocal() as db:
            await aggregation.aggregate_yesterday(db)
    except Exception as e:
        logger.error(f"Daily aggregation job failed: {e}")
    try:
        async with AsyncSessionLocal() as db:
            await aggregation.run_all_cleanup(db)
            await alarm_engine.cleanup_old_alarms(db, settings.ALARM_RETENTION_DAYS)
    except Exception as e:
        logger.error(f"Daily cleanup job failed: {e}")


async def scheduled_polling(poller: PollingScheduler):
    try:
        await poller.poll_devices()
    except Exception as e:
        logger.error(f"Polling cycle failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    await create_default_data()

    alarm_engine = AlarmEngine()
    collector = MetricCollector(alarm_engine=alarm_engine)
    poller = PollingScheduler(collector, alarm_engine)
    poller.scheduler = scheduler
    app.state.alarm_engine = alarm_engine
    app.state.collector = collector
    app.state.poller = poller

    # max_instances=1 keeps a slow run from overlapping the next one
    scheduler.add_job(
        scheduled_polling,
        "interval",
        seconds=settings.SNMP_POLL_INTERVAL_SECONDS,
        args=[poller],
        id="snmp_poll",
        max_instances=1,
    )
    scheduler.add_job(
        scheduled_hourly_aggregation,
        "cron",
        minute=settings.AGGREGATION_HOURLY_MINUTE,
        id="hourly_aggregation",
        max_instances=1,
    )
    scheduler.add_job(
        scheduled_daily_tasks,
        "cron",
        hour=settings.DAILY_TASKS_HOUR,
        minute=settings.DAILY_TASKS_MINUTE,
        args=[alarm_engine],
        id="daily_tasks",
        max_instances=1,
    )
    scheduler.start()
    logger.info("Scheduled tasks started")

    yield

    # Shutdown
    scheduler.shutdown()
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(devices.router)
app.include_router(alarms.router)
app.include_router(metrics.router)
app.include_router(system.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": settings.APP_VERSION}
