"""Tests for the repository layer.

Each test case runs against its own in-memory SQLite engine.

Copyright (c) Bryn Gwalad 2025
"""

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from datetime import timezone
from decimal import Decimal
import unittest

from api.models import Category, Item
from utils.database import init_db, make_engine
from utils.errors import ConstraintViolationError, DependencyIntegrityError, NotFoundError
from utils.repository import CategoryRepository, ItemRepository, Page


class RepositoryTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.categories = CategoryRepository(self.engine, batch_size=3)
        self.items = ItemRepository(self.engine, batch_size=3, category_required=True)

    def tearDown(self):
        self.engine.dispose()

    def make_category(self, code="tools_0", name="Tools") -> Category:
        return self.categories.save(Category(code=code, name=name))

    def make_item(self, sku, category_id, price="9.99", repo=None) -> Item:
        repo = repo or self.items
        return repo.save(
            Item(sku=sku, name=f"Item {sku}", price=Decimal(price), stock=5, category_id=category_id)
        )


class CategoryRepositoryTest(RepositoryTestCase):

    def test_find_by_id_absent_returns_none(self):
        self.assertIsNone(self.categories.find_by_id(42))
        self.assertFalse(self.categories.exists_by_id(42))

    def test_save_assigns_id_and_timestamp(self):
        cat = self.make_category()
        self.assertIsNotNone(cat.id)
        self.assertIsNotNone(cat.updated_at)
        self.assertTrue(self.categories.exists_by_id(cat.id))
        self.assertEqual(self.categories.find_by_id(cat.id).code, "tools_0")

    def test_duplicate_code_is_a_constraint_violation(self):
        self.make_category(code="dup_1")
        with self.assertRaises(ConstraintViolationError):
            self.make_category(code="dup_1", name="Other")
        self.assertEqual(self.categories.count(), 1)

    def test_save_batch_accepts_a_generator(self):
        saved = self.categories.save_batch(Category(code=f"c_{i}", name="C") for i in range(7))
        self.assertEqual(saved, 7)
        self.assertEqual(self.categories.count(), 7)

    def test_failing_chunk_keeps_earlier_chunks_only(self):
        batch = [Category(code=f"c_{i}", name="C") for i in range(4)]
        batch.append(Category(code="c_0", name="duplicate"))
        with self.assertRaises(ConstraintViolationError):
            self.categories.save_batch(batch)
        # first chunk of 3 committed, the failing chunk rolled back entirely
        self.assertEqual(self.categories.count(), 3)

    def test_update_replaces_fields_and_keeps_timestamp_monotonic(self):
        cat = self.make_category()
        first = cat.updated_at
        updated = self.categories.update(cat.id, {"code": "tools_1", "name": "Hand tools", "id": 999})
        self.assertEqual(updated.id, cat.id)
        self.assertEqual(updated.code, "tools_1")
        self.assertGreaterEqual(updated.updated_at, first)

    def test_timestamps_are_timezone_aware(self):
        cat = self.make_category()
        self.assertIsNotNone(cat.updated_at.tzinfo)
        self.categories.save_batch([Category(code=f"c_{i}", name="C") for i in range(4)])
        for stored in self.categories.find_all(0, 10).content:
            self.assertIsNotNone(stored.updated_at)

    def test_resaving_a_loaded_entity_keeps_timestamp_monotonic(self):
        cat = self.make_category()
        loaded = self.categories.find_by_id(cat.id)
        first = loaded.updated_at
        if first.tzinfo is None:
            first = first.replace(tzinfo=timezone.utc)
        loaded.name = "Renamed"
        saved = self.categories.save(loaded)
        self.assertIsNotNone(saved.updated_at.tzinfo)
        self.assertGreaterEqual(saved.updated_at, first)
        self.assertEqual(self.categories.find_by_id(cat.id).name, "Renamed")

    def test_zero_batch_size_is_rejected(self):
        with self.assertRaises(ValueError):
            CategoryRepository(self.engine, batch_size=0)
        with self.assertRaises(ValueError):
            self.categories.save_batch([Category(code="c_0", name="C")], batch_size=0)
        self.assertEqual(self.categories.count(), 0)

    def test_update_missing_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.categories.update(7, {"name": "x"})

    def test_delete_missing_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.categories.delete_by_id(7)

    def test_delete_category_with_items_is_rejected(self):
        cat = self.make_category()
        item = self.make_item("sku-1", cat.id)
        with self.assertRaises(DependencyIntegrityError):
            self.categories.delete_by_id(cat.id)
        self.assertTrue(self.categories.exists_by_id(cat.id))

        self.items.delete_by_id(item.id)
        self.categories.delete_by_id(cat.id)
        self.assertEqual(self.categories.count(), 0)


class ItemRepositoryTest(RepositoryTestCase):

    def test_price_keeps_exact_decimal(self):
        cat = self.make_category()
        item = self.make_item("sku-1", cat.id, price="12.50")
        self.assertEqual(self.items.find_by_id(item.id).price, Decimal("12.50"))

    def test_duplicate_sku_is_a_constraint_violation(self):
        cat = self.make_category()
        self.make_item("sku-1", cat.id)
        with self.assertRaises(ConstraintViolationError):
            self.make_item("sku-1", cat.id)

    def test_unknown_category_is_rejected(self):
        with self.assertRaises(ConstraintViolationError):
            self.make_item("sku-1", 999)
        self.assertEqual(self.items.count(), 0)

    def test_category_required_policy(self):
        with self.assertRaises(ConstraintViolationError):
            self.make_item("sku-1", None)

        optional = ItemRepository(self.engine, category_required=False)
        item = self.make_item("sku-2", None, repo=optional)
        self.assertIsNone(optional.find_by_id(item.id).category_id)

    def test_save_batch_rejects_unknown_category(self):
        cat = self.make_category()
        batch = [
            Item(sku="a", name="A", price=Decimal("1.00"), stock=0, category_id=cat.id),
            Item(sku="b", name="B", price=Decimal("1.00"), stock=0, category_id=cat.id + 1),
        ]
        with self.assertRaises(ConstraintViolationError):
            self.items.save_batch(batch)
        self.assertEqual(self.items.count(), 0)

    def test_find_by_category_fetches_category(self):
        first = self.make_category(code="a_0")
        second = self.make_category(code="b_1")
        for i in range(5):
            self.make_item(f"a-{i}", first.id)
        for i in range(3):
            self.make_item(f"b-{i}", second.id)

        page = self.items.find_by_category(first.id, 0, 10)
        self.assertEqual(page.total_elements, 5)
        self.assertEqual(len(page.content), 5)
        for item in page.content:
            # the session is closed; a lazy relation would fail here
            self.assertIsNotNone(item.category)
            self.assertEqual(item.category.id, first.id)
            self.assertEqual(item.category_id, first.id)
        self.assertEqual(self.items.count_by_category(second.id), 3)

    def test_pagination_arithmetic(self):
        cat = self.make_category()
        self.items.save_batch(
            Item(sku=f"s-{i}", name="I", price=Decimal("2.00"), stock=1, category_id=cat.id)
            for i in range(23)
        )
        size = 5
        first = self.items.find_all(0, size)
        self.assertEqual(first.total_elements, 23)
        self.assertEqual(first.total_pages, 5)
        self.assertEqual(len(first.content), size)
        self.assertEqual([i.sku for i in first.content], [f"s-{i}" for i in range(5)])

        last = self.items.find_all(4, size)
        self.assertEqual(len(last.content), 23 - 4 * size)
        self.assertEqual(self.items.find_all(5, size).content, [])

    def test_invalid_paging_arguments(self):
        with self.assertRaises(ValueError):
            self.items.find_all(-1, 10)
        with self.assertRaises(ValueError):
            self.items.find_all(0, 0)


class PageTest(unittest.TestCase):

    def test_total_pages(self):
        self.assertEqual(Page(total_elements=0, size=10).total_pages, 0)
        self.assertEqual(Page(total_elements=10, size=10).total_pages, 1)
        self.assertEqual(Page(total_elements=11, size=10).total_pages, 2)


if __name__ == "__main__":
    unittest.main()
