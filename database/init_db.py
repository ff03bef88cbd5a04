"""Database initialization and seeding helper.

Creates the configured database tables, emits SQL DDL into
``database/schema.sql`` and optionally clears and/or seeds the store.

Usage:
  python database/init_db.py --seed
  python database/init_db.py --clear --seed --items 10000 --batch-size 5000

Copyright (c) Bryn Gwalad 2025
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path so `from api import models` works when
# running this script directly (python database/init_db.py).
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from sqlmodel import SQLModel
from sqlalchemy.schema import CreateTable

from utils import settings
from utils.database import engine, init_db
from utils.generator import DataGenerator
from utils.repository import CategoryRepository, ItemRepository

logger = logging.getLogger("init_db")


def write_ddl(schema_path: Path) -> None:
    """Write CREATE TABLE statements for every model to ``schema_path``."""
    schema_path.parent.mkdir(parents=True, exist_ok=True)
    with open(schema_path, "w", encoding="utf-8") as f:
        for table in SQLModel.metadata.sorted_tables:
            ddl = str(CreateTable(table).compile(engine))
            f.write(ddl)
            f.write(";\n\n")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create tables and seed benchmark data")
    p.add_argument("--seed", action="store_true", help="Generate categories and items when the store is empty")
    p.add_argument("--clear", action="store_true", help="Delete every item and category first")
    p.add_argument("--categories", type=int, default=settings.SEED_CATEGORIES)
    p.add_argument("--items", type=int, default=settings.SEED_ITEMS)
    p.add_argument("--batch-size", type=int, default=settings.SEED_BATCH_SIZE)
    p.add_argument("--random-seed", type=int, default=settings.SEED_RANDOM_SEED)
    p.add_argument("--ddl", default=str(Path("database") / "schema.sql"), help="Where to write the SQL DDL")
    return p.parse_args(argv)


def main(argv=None) -> None:
    """Create the database, emit DDL and run the requested maintenance."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    logger.info("Using database URL: %s", engine.url.render_as_string(hide_password=True))
    init_db()
    logger.info("Tables created.")

    logger.info("Writing SQL DDL to %s", args.ddl)
    write_ddl(Path(args.ddl))

    categories = CategoryRepository(batch_size=args.batch_size)
    items = ItemRepository(batch_size=args.batch_size)

    if args.clear:
        # Items first: they reference categories.
        removed_items = items.delete_all()
        removed_categories = categories.delete_all()
        logger.info("Cleared %d items and %d categories", removed_items, removed_categories)

    if args.seed:
        generator = DataGenerator(
            categories,
            items,
            categories=args.categories,
            items=args.items,
            batch_size=args.batch_size,
            seed=args.random_seed,
        )
        generator.generate()
        logger.info("Generation stats: %s", generator.stats)

    logger.info("Done.")


if __name__ == "__main__":
    main()
