"""Clients for the external tools the sync job drives."""

from .database import create_mysql_connection
from .dump_client import MySQLDumpClient
from .git_client import GitClient

__all__ = ['GitClient', 'MySQLDumpClient', 'create_mysql_connection']
