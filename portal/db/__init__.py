"""
Portal Database Package

This package provides database connection and session management
using SQLAlchemy.

Modules:
- engine: Database wrapper (pooled engine + session factory)
- deps: Database session dependency for FastAPI

Usage:
    from portal.db.engine import Database

    database = Database.from_settings(settings)
    with database.session() as session:
        # perform database operations
        pass

Concurrency is left to the engine's connection pool and to database
transactions; nothing here holds an in-process lock.
"""
