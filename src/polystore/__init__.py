"""
polystore - Swappable Storage Engines

One asynchronous CRUD contract over a JSON snapshot file, SQLite, MySQL
and Cloud Firestore, selected from configuration and hot-swappable at
runtime.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
