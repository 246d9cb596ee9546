"""
movieshelf - Local Movie Library Manager

Keeps a SQLite catalog of a folder-based video collection in sync with the
NFO descriptor files on disk.

Architecture:
- Application Layer: scanning, reconciliation and live watching
- Domain Layer: metadata records, sync results and exceptions
- Infrastructure Layer: SQLite persistence and file system classification
"""

__version__ = "1.0.0"
__author__ = "movieshelf Team"
__description__ = "Local Movie Library Manager"
