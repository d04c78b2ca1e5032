from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()


def configure_sqlite(engine):
    """
    SQLite only: enforce foreign keys and open every transaction with
    BEGIN IMMEDIATE so two writers serialize on the database lock instead of
    failing with "database is locked" when one tries to upgrade its read lock.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # take BEGIN away from pysqlite, we emit it ourselves below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
