"""
Integration Tests Module

Contains end-to-end scenarios running the library service against a
temporary data root and a file-backed catalog.
"""
