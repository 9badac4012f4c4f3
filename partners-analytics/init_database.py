#!/usr/bin/env python3
# init_database.py

import os
import sys
import logging
import urllib.parse
import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from config import config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SCHEMA_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "database", "schema.sql")
EXPECTED_TABLES = ['users', 'projects', 'metric_points', 'transactions', 'api_keys']

def create_database_if_not_exists():
    """Create database if it doesn't exist"""
    try:
        parsed = urllib.parse.urlparse(config.DATABASE_URL)

        db_name = parsed.path[1:]  # Remove leading '/'
        host = parsed.hostname
        port = parsed.port or 5432

        # Connect to the maintenance database to create our target database
        postgres_url = parsed._replace(path="/postgres").geturl()

        logger.info(f"Connecting to PostgreSQL server at {host}:{port}")
        conn = psycopg2.connect(postgres_url)
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)

        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1 FROM pg_database WHERE datname = %s", (db_name,))
                if cursor.fetchone():
                    logger.info(f"Database '{db_name}' already exists")
                else:
                    logger.info(f"Creating database '{db_name}'")
                    cursor.execute(f'CREATE DATABASE "{db_name}"')
                    logger.info(f"Database '{db_name}' created successfully")
        finally:
            conn.close()
        return True

    except Exception as e:
        logger.error(f"Failed to create database: {e}")
        return False

def initialize_schema():
    """Apply database/schema.sql (idempotent)"""
    conn = None
    try:
        if not os.path.exists(SCHEMA_FILE):
            logger.error(f"Schema file '{SCHEMA_FILE}' not found")
            return False

        logger.info("Reading schema file...")
        with open(SCHEMA_FILE, 'r') as f:
            schema_sql = f.read()

        logger.info("Connecting to target database...")
        conn = psycopg2.connect(config.DATABASE_URL)

        logger.info("Executing schema SQL...")
        with conn.cursor() as cursor:
            cursor.execute(schema_sql)
        conn.commit()

        logger.info("Database schema initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Schema initialization failed: {e}")
        if conn:
            conn.rollback()
        return False
    finally:
        if conn:
            conn.close()

def verify_tables():
    """Check that every dashboard table exists"""
    try:
        from database.connection import db_manager

        if not db_manager.test_connection():
            logger.error("Database connection test failed")
            return False

        rows = db_manager.execute_query("""
            SELECT tablename FROM pg_tables
            WHERE schemaname = 'public'
            AND tablename = ANY(%s)
        """, (EXPECTED_TABLES,), fetch=True)
        existing = {row['tablename'] for row in rows}

        missing = [t for t in EXPECTED_TABLES if t not in existing]
        for table in EXPECTED_TABLES:
            if table in existing:
                logger.info(f"Table '{table}' exists")
        if missing:
            logger.error(f"Missing tables: {missing}")
            return False

        logger.info("Database verification completed successfully")
        return True

    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False

def main():
    logger.info("Starting database initialization...")

    if not create_database_if_not_exists():
        logger.error("Database creation failed. Exiting.")
        sys.exit(1)

    if not initialize_schema():
        logger.error("Schema initialization failed. Exiting.")
        sys.exit(1)

    if not verify_tables():
        logger.error("Database verification failed. Exiting.")
        sys.exit(1)

    logger.info("Database initialization completed successfully!")
    logger.info("")
    logger.info("Next steps:")
    logger.info("1. Start the API server: python api_server.py")
    logger.info("2. Register a partner account through POST /api/auth/register")

if __name__ == "__main__":
    main()
