"""
Pydantic data models.

All wire-facing models serialize with camelCase keys (``wellId``,
``bootstrapStartStep``) so session documents stay compatible with documents
written by the browser dashboard; Python attributes are snake_case.
"""
