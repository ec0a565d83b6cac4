# stock_api/routers/product.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from stock_api.crud import product as crud
from stock_api.database import get_db
from stock_api.schemas.product import (
    ProductCreated,
    ProductIn,
    ProductRead,
    QuantityIn,
    WriteResult,
    advisory,
)
from stock_api.validation import ValidationError, validate_product, validate_quantity_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/produtos", tags=["products"])


def _bad_request(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _not_found(exc: crud.ProductNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get(
    "",
    response_model=List[ProductRead],
    summary="List all products (ordered by name)",
)
def list_products(db: Session = Depends(get_db)):
    items = crud.list_all(db)
    logger.debug("Listing %d products", len(items))
    return items


@router.get(
    "/busca/{term}",
    response_model=List[ProductRead],
    summary="Search products by name substring (case-insensitive)",
)
def search_products(term: str, db: Session = Depends(get_db)):
    return crud.search(db, term)


@router.post(
    "",
    response_model=ProductCreated,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create a product",
)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    try:
        data = validate_product(payload.name, payload.quantity)
    except ValidationError as e:
        raise _bad_request(e)
    obj = crud.create(db, data.name, data.quantity)
    read = ProductRead.model_validate(obj)
    return ProductCreated(**read.model_dump(), **advisory(data.low_stock))


@router.put(
    "/{product_id}",
    response_model=WriteResult,
    response_model_exclude_none=True,
    summary="Replace name and quantity of a product",
)
def update_product(product_id: int, payload: ProductIn, db: Session = Depends(get_db)):
    try:
        data = validate_product(payload.name, payload.quantity)
    except ValidationError as e:
        raise _bad_request(e)
    try:
        crud.update_full(db, product_id, data.name, data.quantity)
    except crud.ProductNotFoundError as e:
        raise _not_found(e)
    return WriteResult(**advisory(data.low_stock))


@router.patch(
    "/{product_id}/quantidade",
    response_model=WriteResult,
    response_model_exclude_none=True,
    summary="Set the quantity of a product",
)
def update_product_quantity(product_id: int, payload: QuantityIn, db: Session = Depends(get_db)):
    try:
        data = validate_quantity_only(payload.quantity)
    except ValidationError as e:
        raise _bad_request(e)
    try:
        crud.update_quantity(db, product_id, data.quantity)
    except crud.ProductNotFoundError as e:
        raise _not_found(e)
    return WriteResult(**advisory(data.low_stock))


@router.delete(
    "/{product_id}",
    response_model=WriteResult,
    response_model_exclude_none=True,
    summary="Delete a product",
)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    try:
        crud.delete(db, product_id)
    except crud.ProductNotFoundError as e:
        raise _not_found(e)
    return WriteResult()
