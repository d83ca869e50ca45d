"""
Background scheduler for periodic analytics runs.

Uses APScheduler to run the full analysis in the background on the cron
schedule from settings (ANALYTICS_SCHEDULE_CRON_DAY / _HOUR, UTC).
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
from novel_insights.core.config import settings
from novel_insights.database import SessionLocal
from novel_insights.services.analytics_engine import AnalyticsEngine

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None

ANALYTICS_JOB_ID = "periodic_full_analysis"


def run_analysis_job():
    """
    Scheduled job: record metrics, generate recommendations and refresh patterns.
    """
    logger.info("Running scheduled analytics job")

    db: Session = SessionLocal()
    try:
        summary = AnalyticsEngine(db).run_full_analysis()
        logger.info(f"Scheduled analytics job completed: {summary.model_dump()}")
    except Exception as e:
        logger.exception(f"Scheduled analytics job failed: {e}")
    finally:
        db.close()


def build_trigger() -> CronTrigger:
    return CronTrigger(
        day_of_week=settings.ANALYTICS_SCHEDULE_CRON_DAY,
        hour=settings.ANALYTICS_SCHEDULE_CRON_HOUR,
        minute=0,
        timezone="UTC",
    )


def start_scheduler():
    """
    Start the background scheduler with the analytics job.
    Called from the FastAPI startup event when ANALYTICS_SCHEDULE_ENABLED is set.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    logger.info("Starting background scheduler")
    scheduler = BackgroundScheduler()

    scheduler.add_job(
        run_analysis_job,
        trigger=build_trigger(),
        id=ANALYTICS_JOB_ID,
        name="Run full analytics analysis",
        replace_existing=True
    )

    scheduler.start()
    logger.info(
        "Background scheduler started: analytics every %s at %02d:00 UTC",
        settings.ANALYTICS_SCHEDULE_CRON_DAY,
        settings.ANALYTICS_SCHEDULE_CRON_HOUR,
    )


def stop_scheduler():
    """
    Stop the background scheduler.
    Called from the FastAPI shutdown event.
    """
    global scheduler

    if scheduler is not None:
        logger.info("Stopping background scheduler")
        scheduler.shutdown()
        scheduler = None
