"""Bulk test data generator.

Fills an empty store with categories and items for load testing. The shape of
the dataset is fixed by configuration (counts and batch size); names, prices,
stock levels and category assignment are random.

Generation is all or nothing at the process level: when either table already
holds rows the run is skipped. A run that fails part way leaves the batches
already flushed in place, and the store has to be cleared before seeding
again (``python database/init_db.py --clear --seed``).

Copyright (c) Bryn Gwalad 2025
"""

import logging
import random
import re
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from faker import Faker

from api.models import Category, Item
from utils import settings
from utils.database import seed_lock
from utils.repository import CategoryRepository, ItemRepository

logger = logging.getLogger(__name__)

CODE_TOKEN_MAX_LENGTH = 25
NAME_MAX_LENGTH = 128
_CODE_TOKEN_STRIP = re.compile(r"[^a-zA-Z0-9.-]")

PRICE_MIN = 1
PRICE_MAX = 1000
STOCK_MAX = 1000
CENT = Decimal("0.01")


def sanitize_code_token(raw: str, max_length: int = CODE_TOKEN_MAX_LENGTH) -> str:
    """Keep ``[a-zA-Z0-9.-]``, lowercase and truncate to ``max_length``."""
    return _CODE_TOKEN_STRIP.sub("", raw).lower()[:max_length]


def category_code(raw_token: str, index: int) -> str:
    # The index suffix carries uniqueness; the token may repeat.
    return f"{sanitize_code_token(raw_token)}_{index}"


def random_price(rng: random.Random) -> Decimal:
    price = Decimal(rng.uniform(PRICE_MIN, PRICE_MAX)).quantize(CENT, rounding=ROUND_HALF_UP)
    if price >= PRICE_MAX:
        price = Decimal(PRICE_MAX) - CENT
    return price


class DataGenerator:
    """Seed categories then items through the repositories.

    ``stats`` records the outcome of the last ``generate`` call, including
    whether it was skipped because data was already present.
    """

    def __init__(
        self,
        category_repository: CategoryRepository,
        item_repository: ItemRepository,
        categories: Optional[int] = None,
        items: Optional[int] = None,
        batch_size: Optional[int] = None,
        seed: Optional[int] = None,
    ):
        self.category_repository = category_repository
        self.item_repository = item_repository
        self.categories = settings.SEED_CATEGORIES if categories is None else categories
        self.items = settings.SEED_ITEMS if items is None else items
        self.batch_size = settings.SEED_BATCH_SIZE if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        seed = settings.SEED_RANDOM_SEED if seed is None else seed
        self.rng = random.Random(seed)
        self.fake = Faker(settings.SEED_FAKER_LOCALE)
        if seed is not None:
            self.fake.seed_instance(seed)
        self.stats: Dict[str, object] = {}
        self.reset_stats()

    def reset_stats(self) -> None:
        self.stats = {
            "skipped": False,
            "categories": 0,
            "items": 0,
            "category_flushes": 0,
            "item_flushes": 0,
            "largest_batch": 0,
            "elapsed_seconds": 0.0,
        }

    def is_seeded(self) -> bool:
        return self.category_repository.count() > 0 or self.item_repository.count() > 0

    def generate(self) -> None:
        """Seed the store unless it already holds data."""
        self.reset_stats()
        with seed_lock(self.category_repository.bind):
            if self.is_seeded():
                self.stats["skipped"] = True
                logger.info("Store already contains data; skipping data generation")
                return

            logger.info(
                "Starting data generation: %d categories, %d items, batch size %d",
                self.categories, self.items, self.batch_size,
            )
            started = time.monotonic()
            category_ids = self._generate_categories()
            self._generate_items(category_ids)
            self.stats["elapsed_seconds"] = round(time.monotonic() - started, 3)

            logger.info(
                "Data generation completed in %.1fs: %d categories, %d items",
                self.stats["elapsed_seconds"],
                self.category_repository.count(),
                self.item_repository.count(),
            )

    def build_category(self, index: int) -> Category:
        name = self.fake.catch_phrase()
        return Category(code=category_code(name, index), name=name[:NAME_MAX_LENGTH])

    def build_item(self, index: int, category_ids: List[int]) -> Item:
        return Item(
            sku=f"{self.fake.ean13()}-{index}",
            name=" ".join(self.fake.words(nb=3)).capitalize()[:NAME_MAX_LENGTH],
            description=self.fake.sentence(nb_words=15),
            price=random_price(self.rng),
            stock=self.rng.randrange(STOCK_MAX),
            category_id=self.rng.choice(category_ids) if category_ids else None,
        )

    def _generate_categories(self) -> List[int]:
        logger.info("Generating %d categories...", self.categories)
        categories = [self.build_category(i) for i in range(self.categories)]
        try:
            for start in range(0, len(categories), self.batch_size):
                batch = categories[start:start + self.batch_size]
                self.category_repository.save_batch(batch, batch_size=len(batch))
                self.stats["category_flushes"] += 1
                self.stats["categories"] += len(batch)
        except Exception:
            logger.exception("Category generation aborted after %d categories", self.stats["categories"])
            raise
        logger.info("%d categories generated", self.stats["categories"])
        # Items need storage-assigned ids, so every category is persisted first.
        return [category.id for category in categories]

    def _generate_items(self, category_ids: List[int]) -> None:
        logger.info("Generating %d items...", self.items)
        batch: List[Item] = []
        for index in range(self.items):
            batch.append(self.build_item(index, category_ids))
            if len(batch) >= self.batch_size:
                self._flush_items(batch)
                batch = []
        if batch:
            self._flush_items(batch)
        logger.info("%d items generated", self.stats["items"])

    def _flush_items(self, batch: List[Item]) -> None:
        try:
            self.item_repository.save_batch(batch, batch_size=len(batch))
        except Exception:
            logger.exception("Item generation aborted after %d items", self.stats["items"])
            raise
        self.stats["item_flushes"] += 1
        self.stats["items"] += len(batch)
        self.stats["largest_batch"] = max(self.stats["largest_batch"], len(batch))
        logger.info("%d items generated...", self.stats["items"])
