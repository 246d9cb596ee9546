"""
Unit Tests Module

Contains unit tests for individual components:
- descriptor parsing and writing
- folder classification and path handling
- catalog store, reconciler, watch engine and configuration
"""
