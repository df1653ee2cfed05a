import os
import logging
import fcntl
import tempfile
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import atexit
from config import Config

logger = logging.getLogger(__name__)

scheduler = None
scheduler_lock_file = None

def init_scheduler(app):
    """Initialize the background scheduler with protection against duplicate instances"""
    global scheduler, scheduler_lock_file

    if app.config.get('TESTING'):
        logger.info("Scheduler disabled in TESTING")
        return None

    if not app.config.get('AUTO_START_SCHEDULER', False):
        logger.info("Scheduler disabled by config")
        return None

    if scheduler is not None:
        return scheduler

    # Try to acquire an exclusive lock to prevent duplicate schedulers
    lock_path = os.path.join(tempfile.gettempdir(), 'cleanplate_scheduler.lock')
    try:
        scheduler_lock_file = open(lock_path, 'w')
        fcntl.flock(scheduler_lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        scheduler_lock_file.write(str(os.getpid()))
        scheduler_lock_file.flush()
        logger.info(f"Acquired scheduler lock (PID: {os.getpid()})")
    except IOError:
        logger.info("Another scheduler instance is already running, skipping initialization")
        return None

    try:
        scheduler = BackgroundScheduler()

        timezone = app.config.get('SCHEDULER_TIMEZONE', Config.SCHEDULER_TIMEZONE)
        sweep_time = app.config.get('SCORE_SWEEP_TIME', Config.SCORE_SWEEP_TIME)
        try:
            hour_str, minute_str = sweep_time.split(':', 1)
            hour = int(hour_str)
            minute = int(minute_str)
        except Exception:
            logger.warning(f"Invalid score sweep time '{sweep_time}', using 04:00")
            hour = 4
            minute = 0

        scheduler.add_job(
            func=run_scheduled_score_sweep,
            args=[app],
            trigger=CronTrigger(hour=hour, minute=minute, timezone=timezone),
            id='score_sweep',
            name='Nightly CleanPlate Score Recalculation',
            replace_existing=True,
            max_instances=1,
        )

        scheduler.start()

        # Shut down the scheduler and release lock when exiting the app
        def cleanup():
            global scheduler_lock_file
            if scheduler:
                scheduler.shutdown()
            if scheduler_lock_file:
                try:
                    fcntl.flock(scheduler_lock_file.fileno(), fcntl.LOCK_UN)
                    scheduler_lock_file.close()
                    os.remove(scheduler_lock_file.name)
                except OSError:
                    pass

        atexit.register(cleanup)

        logger.info("Scheduler initialized. Score sweep time=%s, timezone=%s", sweep_time, timezone)
        return scheduler

    except Exception as e:
        logger.error(f"Failed to initialize scheduler: {str(e)}")
        return None

def run_scheduled_score_sweep(app):
    """Run the scheduled full score recalculation"""
    try:
        with app.app_context():
            logger.info("Starting scheduled score sweep")
            from services.recalculation_service import ScoreRecalculationService

            run = ScoreRecalculationService().recalculate_all(trigger='scheduler')

            logger.info(f"Scheduled score sweep {run.status}: {run.updated_count} updated, "
                       f"{run.unchanged_count} unchanged, {run.error_count} errors")

    except Exception as e:
        logger.error(f"Scheduled score sweep failed: {str(e)}")


def get_scheduler_status():
    """Get current scheduler status"""
    global scheduler

    if scheduler is None:
        return {"status": "not_initialized"}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs
    }
