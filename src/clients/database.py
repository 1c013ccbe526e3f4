"""MySQL connection factory."""

import pymysql

from ..utils.config import ConnectionConfig


def create_mysql_connection(connection: ConnectionConfig, connect_timeout: int = 10):
    """Open a fresh autocommitting connection; the caller closes it."""
    connection.require_complete()
    return pymysql.connect(
        host=connection.host,
        user=connection.user,
        password=connection.password,
        database=connection.database,
        port=connection.port,
        connect_timeout=connect_timeout,
        autocommit=True,
    )
