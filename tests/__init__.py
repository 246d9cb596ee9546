"""
Tests Module

Contains test suites for movieshelf:
- unit: Unit tests for individual components
- integration: End-to-end synchronization scenarios
"""
