"""Scheduler service for running the sync job's periodic triggers."""

import os
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import schedule
from loguru import logger

from src.utils.config import JobConfig, SchedulerConfig
from .sync_job import DatabaseSyncJob


def next_aligned_run(now: datetime, hours: int, minute: int) -> datetime:
    """First run time after now whose hour is a multiple of hours, at :minute.

    Matches cron's `M */H * * *`: hours count from midnight, not from
    process start.
    """
    candidate = now.replace(hour=0, minute=minute, second=0, microsecond=0)
    while candidate <= now or candidate.hour % hours:
        candidate += timedelta(hours=1)
    return candidate


class SchedulerService:
    """Registers the sync job's triggers on a schedule and runs them."""

    def __init__(self, sync_job: DatabaseSyncJob, scheduler_config: Optional[SchedulerConfig] = None,
                 run_in_threads: bool = False):
        """Initialize the scheduler service.

        Args:
            sync_job: Sync job whose operations the triggers invoke
            scheduler_config: Job definitions; defaults to the daily, hourly
                and four-hourly triggers
            run_in_threads: Start each scheduled run on its own thread so a
                slow job does not hold back the other timers
        """
        self.sync_job = sync_job
        self.scheduler_config = scheduler_config or SchedulerConfig()
        self.run_in_threads = run_in_threads
        self.scheduler = schedule.Scheduler()
        self.jobs: Dict[str, schedule.Job] = {}
        self.running = False
        self.thread = None
        self.job_handlers: Dict[str, Callable] = {}
        self.job_status: Dict[str, Dict] = {}

        self.register_job_handler("full_sync", sync_job.full_sync)
        self.register_job_handler("hourly_backup", sync_job.export_to_file)
        self.register_job_handler("schema_refresh", sync_job.refresh_schema)

    def register_job_handler(self, job_id: str, handler: Callable) -> None:
        """Register a handler function for a job.

        Args:
            job_id: Unique identifier for the job
            handler: Function to execute when the job runs
        """
        self.job_handlers[job_id] = handler
        logger.info(f"Registered handler for job: {job_id}")

    def _job_config(self, job_id: str) -> Optional[JobConfig]:
        for job in self.scheduler_config.jobs:
            if job.id == job_id:
                return job
        return None

    def get_job_status(self, job_id: str) -> Optional[Dict]:
        """Get the current status of a job.

        Args:
            job_id: Job identifier

        Returns:
            Job configuration merged with runtime status, or None if unknown
        """
        job = self._job_config(job_id)
        if job is None:
            return None

        status = job.model_dump()
        status["status"] = "idle"
        status.update(self.job_status.get(job_id, {}))
        scheduled = self.jobs.get(job_id)
        status["next_run"] = scheduled.next_run if scheduled else None
        return status

    def get_all_jobs(self) -> List[Dict]:
        return [self.get_job_status(job.id) for job in self.scheduler_config.jobs]

    def setup_jobs(self) -> None:
        """Set up scheduled jobs based on configuration."""
        self.scheduler.clear()
        self.jobs.clear()

        for job_config in self.scheduler_config.jobs:
            if not job_config.enabled:
                continue

            job_id = job_config.id
            if job_id not in self.job_handlers:
                logger.warning(f"No handler registered for job {job_id}, not scheduling it")
                continue

            schedule_config = job_config.schedule

            if schedule_config.type == "interval":
                interval_minutes = schedule_config.interval_minutes
                if interval_minutes % 60 == 0:
                    hours = interval_minutes // 60
                    job = self.scheduler.every(hours).hours
                    if schedule_config.minute is not None:
                        job = job.at(f":{schedule_config.minute:02d}")
                    logger.info(f"Job {job_id} scheduled to run every {hours} hour(s)")
                else:
                    job = self.scheduler.every(interval_minutes).minutes
                    logger.info(f"Job {job_id} scheduled to run every {interval_minutes} minutes")

            elif schedule_config.type == "daily":
                job = self.scheduler.every().day.at(schedule_config.time)
                logger.info(f"Job {job_id} scheduled to run daily at {schedule_config.time}")

            job = job.do(self._dispatch_job, job_id)
            if schedule_config.type == "interval" and job.unit == "hours" and schedule_config.minute is not None:
                job.next_run = next_aligned_run(datetime.now(), job.interval, schedule_config.minute)
            self.jobs[job_id] = job
            logger.info(f"Job {job_id} next run time: {job.next_run}")

    def _dispatch_job(self, job_id: str) -> Optional[threading.Thread]:
        if self.run_in_threads:
            thread = threading.Thread(target=self._run_job, args=(job_id,), daemon=True)
            thread.start()
            return thread
        self._run_job(job_id)
        return None

    def _run_job(self, job_id: str) -> None:
        """Execute a scheduled job.

        Handler exceptions are logged and recorded in the job status; they
        never stop the scheduler loop.

        Args:
            job_id: Job identifier
        """
        logger.info(f"Starting scheduled job: {job_id}")

        self.job_status[job_id] = {
            "status": "running",
            "start_time": datetime.now(timezone.utc).isoformat(),
            "pid": os.getpid()
        }

        try:
            if job_id in self.job_handlers:
                result = self.job_handlers[job_id]()

                self.job_status[job_id].update({
                    "status": "completed",
                    "end_time": datetime.now(timezone.utc).isoformat(),
                    "last_success": datetime.now(timezone.utc).isoformat(),
                    "result": result
                })
            else:
                logger.error(f"No handler registered for job: {job_id}")
                self.job_status[job_id]["status"] = "error"
                self.job_status[job_id]["error"] = "No handler registered"

        except Exception as e:
            logger.error(f"Error running job {job_id}: {e}")
            self.job_status[job_id].update({
                "status": "error",
                "end_time": datetime.now(timezone.utc).isoformat(),
                "error": str(e)
            })

        finally:
            logger.info(f"Completed job: {job_id}")

    def _scheduler_loop(self) -> None:
        """Main scheduler loop."""
        while self.running:
            try:
                self.scheduler.run_pending()
                time.sleep(1)
            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}")
                time.sleep(5)

    def start(self) -> None:
        """Start the scheduler service."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting database sync scheduler")
        self.running = True

        self.setup_jobs()

        self.thread = threading.Thread(target=self._scheduler_loop, daemon=True)
        self.thread.start()

        logger.info("Scheduler started successfully")

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler service.

        Args:
            wait: Join the loop thread briefly. In-flight jobs are never
                waited for beyond that.
        """
        if not self.running:
            logger.warning("Scheduler is not running")
            return

        logger.info("Stopping scheduler service")
        self.running = False

        if wait and self.thread and self.thread.is_alive():
            self.thread.join(timeout=5)

        self.scheduler.clear()
        self.jobs.clear()

        logger.info("Scheduler service stopped")

    def run_forever(self) -> None:
        """Start the scheduler and block until interrupted (Ctrl+C / SIGINT)."""
        self.start()
        try:
            while self.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down scheduler...")
            self.stop(wait=False)

    def trigger_job(self, job_id: str) -> threading.Thread:
        """Manually trigger a job execution.

        Args:
            job_id: Job identifier

        Returns:
            The daemon thread running the job
        """
        logger.info(f"Manually triggering job: {job_id}")

        thread = threading.Thread(
            target=self._run_job,
            args=(job_id,),
            daemon=True
        )
        thread.start()
        return thread

    def get_next_run_times(self) -> Dict[str, Optional[datetime]]:
        """Get next run times for all jobs.

        Returns:
            Dictionary mapping job IDs to their next run times
        """
        return {job_id: job.next_run for job_id, job in self.jobs.items()}
