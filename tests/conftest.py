"""Shared pytest setup.

Points the application at an in-memory SQLite database before any test
module imports it, and keeps startup seeding off.

Copyright (c) Bryn Gwalad 2025
"""

import os
import sys

# Ensure the project root is on sys.path so tests can import `api` and `utils`.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_ON_STARTUP"] = "0"
os.environ.setdefault("ITEM_CATEGORY_REQUIRED", "1")
