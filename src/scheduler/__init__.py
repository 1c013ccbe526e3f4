"""Scheduler module for automated database schema sync and backups."""

from .scheduler_service import SchedulerService
from .sync_job import DatabaseSyncJob

__all__ = ['SchedulerService', 'DatabaseSyncJob']
