"""
SQLite access for the document session store.

Modules
-------
connection  ``get_connection()`` context manager (schema applied, WAL, write lock).
schema      DDL for the ``session_documents`` table and ``apply_schema()``.
"""
