"""
Application Layer - Synchronization Services

This layer keeps the catalog in step with the movie folders on disk and
handles asynchronous work using asyncio.

Modules:
- library_manager: Descriptor parsing, reconciliation, live watching
"""
