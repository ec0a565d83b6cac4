from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stock_api.database import Base
from stock_api.validation import MAX_NAME_LENGTH


class Product(Base):
    """
    Inventory record.

    Note:
    - `quantity > 0` and a non-blank `name` are enforced before persistence
      (stock_api.validation), not by DB constraints.
    - `name` is not unique; indexed for the name-ordered listing.
    - Timestamps are set by the store; `created_at` never changes after insert.
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        name_preview = (self.name[:32] + "…") if self.name and len(self.name) > 33 else self.name
        return f"<Product id={self.id!r} name={name_preview!r} quantity={self.quantity!r}>"
