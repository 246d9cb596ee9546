"""
Domain Layer - Core Business Entities and Value Objects

This layer defines the records the synchronization core passes around,
independent of the database and the file system.

Modules:
- models: Movie metadata, folder keys and sync results
- exceptions: Domain-specific exceptions
"""
