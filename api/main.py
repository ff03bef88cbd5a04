"""HTTP API for the benchmark service.

Provides paged CRUD endpoints for Category and Item on top of the repository
layer. When ``SEED_ON_STARTUP`` is enabled the bulk data generator runs once
as the application starts.

Copyright (c) Bryn Gwalad 2025
"""

from typing import Optional
import asyncio
import logging

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse

from utils import settings
from utils.database import init_db
from utils.errors import ConstraintViolationError, DependencyIntegrityError, NotFoundError
from utils.generator import DataGenerator
from utils.repository import CategoryRepository, ItemRepository, Page
from .models import Category, CategoryIn, Item, ItemIn

app = FastAPI(title="Catalog Benchmark API")

# Module logger
logger = logging.getLogger("benchmark_api")

category_repository = CategoryRepository()
item_repository = ItemRepository()


def _serialize_category(cat: Category) -> dict:
    """Convert a Category into a JSON-serializable dict.

    Categories never embed their items; use ``/categories/{id}/items``.
    """
    return {
        "id": cat.id,
        "code": cat.code,
        "name": cat.name,
        "updated_at": cat.updated_at.isoformat() if cat.updated_at else None,
    }


def _serialize_item(item: Item) -> dict:
    # Only the category id is exposed; the relation itself is never
    # serialized. Price is a string to keep the exact decimal value.
    return {
        "id": item.id,
        "sku": item.sku,
        "name": item.name,
        "description": item.description,
        "price": str(item.price),
        "stock": item.stock,
        "category_id": item.category_id,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def _serialize_page(page: Page, serialize) -> dict:
    return {
        "content": [serialize(entity) for entity in page.content],
        "totalElements": page.total_elements,
        "totalPages": page.total_pages,
        "number": page.number,
        "size": page.size,
    }


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return Response(status_code=404)


@app.exception_handler(ConstraintViolationError)
async def constraint_violation_handler(request: Request, exc: ConstraintViolationError):
    logger.info("Constraint violation on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(DependencyIntegrityError)
async def dependency_integrity_handler(request: Request, exc: DependencyIntegrityError):
    logger.info("Rejected delete on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.on_event("startup")
async def on_startup():
    """Application startup handler.

    Initializes the database and, when configured, seeds it in a worker
    thread so the event loop stays free.
    """
    init_db()

    # Configure logging (do not override global config if already set)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO)

    if settings.SEED_ON_STARTUP:
        generator = DataGenerator(category_repository, item_repository)
        await asyncio.to_thread(generator.generate)


@app.get("/categories/")
def list_categories(
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    """Return one page of categories."""
    return _serialize_page(category_repository.find_all(page, size), _serialize_category)


@app.get("/categories/{category_id}")
def get_category(category_id: int):
    """Return a category by id, or an empty 404 if not found."""
    category = category_repository.find_by_id(category_id)
    if category is None:
        return Response(status_code=404)
    return _serialize_category(category)


@app.get("/categories/{category_id}/items")
def list_category_items(
    category_id: int,
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    """Return one page of the items owned by a category."""
    if not category_repository.exists_by_id(category_id):
        return Response(status_code=404)
    return _serialize_page(item_repository.find_by_category(category_id, page, size), _serialize_item)


@app.post("/categories/", status_code=201)
def create_category(payload: CategoryIn):
    category = category_repository.save(Category(**payload.model_dump()))
    return _serialize_category(category)


@app.put("/categories/{category_id}")
def update_category(category_id: int, payload: CategoryIn):
    """Replace code and name of an existing category."""
    category = category_repository.update(category_id, payload.model_dump())
    return _serialize_category(category)


@app.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int):
    """Delete a category. Categories that still own items are rejected."""
    category_repository.delete_by_id(category_id)
    return Response(status_code=204)


@app.get("/items/")
def list_items(
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category_id: Optional[int] = Query(default=None, alias="categoryId"),
):
    """List items, optionally restricted to one category."""
    if category_id is not None:
        result = item_repository.find_by_category(category_id, page, size)
    else:
        result = item_repository.find_all(page, size)
    return _serialize_page(result, _serialize_item)


@app.get("/items/{item_id}")
def get_item(item_id: int):
    item = item_repository.find_by_id(item_id)
    if item is None:
        return Response(status_code=404)
    return _serialize_item(item)


@app.post("/items/", status_code=201)
def create_item(payload: ItemIn):
    """Create a new Item. The referenced category must exist."""
    item = item_repository.save(Item(**payload.model_dump()))
    return _serialize_item(item)


@app.put("/items/{item_id}")
def update_item(item_id: int, payload: ItemIn):
    item = item_repository.update(item_id, payload.model_dump())
    return _serialize_item(item)


@app.delete("/items/{item_id}", status_code=204)
def delete_item(item_id: int):
    item_repository.delete_by_id(item_id)
    return Response(status_code=204)
