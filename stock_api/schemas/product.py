# stock_api/schemas/product.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from stock_api.validation import LOW_STOCK_THRESHOLD

LOW_STOCK_WARNING = f"Low stock: quantity is {LOW_STOCK_THRESHOLD} or less."

# The wire uses the Portuguese keys (nome/quantidade) for client compatibility; the English
# names are accepted too. Request fields take any JSON value: stock_api.validation decides
# what is acceptable, so a wrong type gets the same message as a wrong value.


class ProductIn(BaseModel):
    """Body for POST /api/produtos and PUT /api/produtos/{id}."""
    name: Any = Field(None, validation_alias=AliasChoices("nome", "name"))
    quantity: Any = Field(None, validation_alias=AliasChoices("quantidade", "quantity"))

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"nome": "Parafusos M6", "quantidade": 40}]}
    )


class QuantityIn(BaseModel):
    """Body for PATCH /api/produtos/{id}/quantidade."""
    quantity: Any = Field(None, validation_alias=AliasChoices("quantidade", "quantity"))

    model_config = ConfigDict(json_schema_extra={"examples": [{"quantidade": 12}]})


class ProductRead(BaseModel):
    id: int
    name: str = Field(..., alias="nome")
    quantity: int = Field(..., alias="quantidade")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class Advisory(BaseModel):
    """Low-stock note attached to successful writes; omitted when not low."""
    low_stock: Optional[bool] = Field(None, alias="lowStock")
    warning: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ProductCreated(Advisory, ProductRead):
    pass


class WriteResult(Advisory):
    success: bool = True


def advisory(low_stock: bool) -> dict:
    if not low_stock:
        return {}
    return {"low_stock": True, "warning": LOW_STOCK_WARNING}
