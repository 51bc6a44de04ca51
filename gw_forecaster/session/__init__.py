"""
Session document persistence (local JSON file or SQLite document table).
"""
