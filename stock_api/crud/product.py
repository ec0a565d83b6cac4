# stock_api/crud/product.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy import delete as sa_delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_api.models.product import Product

logger = logging.getLogger(__name__)


class ProductNotFoundError(Exception):
    """No row matched the given product id."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found.")
        self.product_id = product_id


class StoreUnavailableError(Exception):
    """Database/pool failure (timeout, lost connection, SQL error)."""
    pass


@contextmanager
def _store_call(db: Session, action: str) -> Iterator[None]:
    """Rollback + log + translate any SQLAlchemy failure for one store call."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Store failure while trying to %s", action)
        raise StoreUnavailableError(f"Could not {action}.") from e


def _ordered():
    # name first; id as tiebreaker so equal names keep a stable order
    return select(Product).order_by(Product.name.asc(), Product.id.asc())


def list_all(db: Session) -> List[Product]:
    """All products, ordered by name."""
    with _store_call(db, "list products"):
        return list(db.execute(_ordered()).scalars().all())


def search(db: Session, term: str) -> List[Product]:
    """
    Case-insensitive substring match on ``name`` (ordered by name).
    LIKE wildcards in ``term`` are escaped, so ``"50%"`` matches literally.
    """
    stmt = _ordered().where(Product.name.icontains(term, autoescape=True))
    with _store_call(db, "search products"):
        return list(db.execute(stmt).scalars().all())


def count(db: Session) -> int:
    with _store_call(db, "count products"):
        return int(db.scalar(select(func.count(Product.id))) or 0)


def create(db: Session, name: str, quantity: int) -> Product:
    """Insert a product; the DB assigns id and timestamps."""
    obj = Product(name=name, quantity=quantity)
    with _store_call(db, "create product"):
        db.add(obj)
        db.commit()
        db.refresh(obj)
    logger.info("Created product id=%s name=%r quantity=%s", obj.id, obj.name, obj.quantity)
    return obj


def _update_one(db: Session, product_id: int, action: str, **values) -> None:
    """
    Single UPDATE; not-found is decided by the matched row count (no pre-read).
    updated_at is always bumped, so a same-value update still matches its row.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(updated_at=func.now(), **values)
        .execution_options(synchronize_session=False)
    )
    with _store_call(db, action):
        matched = db.execute(stmt).rowcount
        db.commit()
        # the bulk UPDATE bypasses the identity map; reload on next access
        db.expire_all()
    if not matched:
        raise ProductNotFoundError(product_id)


def update_full(db: Session, product_id: int, name: str, quantity: int) -> Product:
    """Replace name and quantity. Raises ProductNotFoundError if the id is unknown."""
    _update_one(db, product_id, "update product", name=name, quantity=quantity)
    with _store_call(db, "reload product"):
        obj = db.get(Product, product_id, populate_existing=True)
    if obj is None:
        # deleted between the UPDATE and the reload
        raise ProductNotFoundError(product_id)
    return obj


def update_quantity(db: Session, product_id: int, quantity: int) -> None:
    _update_one(db, product_id, "update product quantity", quantity=quantity)


def delete(db: Session, product_id: int) -> None:
    """Hard delete. Raises ProductNotFoundError when nothing was deleted."""
    stmt = sa_delete(Product).where(Product.id == product_id).execution_options(synchronize_session=False)
    with _store_call(db, "delete product"):
        matched = db.execute(stmt).rowcount
        db.commit()
        db.expire_all()
    if not matched:
        raise ProductNotFoundError(product_id)
    logger.info("Deleted product id=%s", product_id)
