# database/connection.py
import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
import logging
from config import config

logger = logging.getLogger(__name__)

class DatabaseManager:
    def __init__(self, connection_string=None):
        self.connection_string = connection_string or config.DATABASE_URL

    @contextmanager
    def get_connection(self):
        conn = None
        try:
            conn = psycopg2.connect(self.connection_string)
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def execute_query(self, query, params=None, fetch=False):
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                if fetch:
                    return cursor.fetchall()
                conn.commit()
                return cursor.rowcount

    def execute_returning(self, query, params=None):
        """Run a write statement with a RETURNING clause and commit."""
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
                conn.commit()
                return rows

    def execute_many(self, query, rows):
        if not rows:
            return 0
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.executemany(query, rows)
                conn.commit()
                return cursor.rowcount

    def test_connection(self):
        """Test database connection"""
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    return True
        except Exception as e:
            logger.error(f"Connection test failed: {e}")
            return False

db_manager = DatabaseManager()
