"""
Database package for CommunityOps.

Public API:
    - db_connection: Shared aiosqlite connection manager
    - SchemaManager: Creates the IA case tables
    - IACaseStore: Case persistence used by the IA case manager
"""
