"""Runtime configuration for the benchmark service.

All values come from environment variables (a ``.env`` file at the project
root is honoured). They are read once at import time.

Copyright (c) Bryn Gwalad 2025
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


# Storage. DATABASE_URL wins; otherwise a local SQLite file is used.
SQLITE_FILE = os.getenv("SQLITE_FILE", "database/database.db")
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{SQLITE_FILE}"
SQL_ECHO = _flag("SQL_ECHO")

# Seed data generation
SEED_ON_STARTUP = _flag("SEED_ON_STARTUP")
SEED_CATEGORIES = int(os.getenv("SEED_CATEGORIES", "2000"))
SEED_ITEMS = int(os.getenv("SEED_ITEMS", "100000"))
SEED_BATCH_SIZE = int(os.getenv("SEED_BATCH_SIZE", "1000"))
SEED_RANDOM_SEED = _optional_int("SEED_RANDOM_SEED")
# Faker locale for generated names and descriptions
SEED_FAKER_LOCALE = os.getenv("SEED_FAKER_LOCALE", "fr_FR")

# Whether every Item must reference a Category
ITEM_CATEGORY_REQUIRED = _flag("ITEM_CATEGORY_REQUIRED", "1")

# Pagination defaults for list endpoints
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "1000"))
