"""
Infrastructure Layer - Persistence and File System

This layer implements data persistence (SQLite/SQLAlchemy) and the
file system operations the library core relies on.

Modules:
- database: SQLite database with SQLAlchemy ORM
- file_system: Path normalization and movie folder classification
"""
