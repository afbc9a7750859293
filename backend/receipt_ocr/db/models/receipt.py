"""
Receipt / ReceiptItem — the persisted result of one upload.

A receipt row is created as a placeholder (every extracted field NULL,
no items) before recognition runs; the worker fills it in afterwards.
"""

from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from receipt_ocr.db.models.base import Base, generate_uuid, utcnow


class Receipt(Base):
    """One row per uploaded receipt image."""

    __tablename__ = "receipts"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # ── Extracted fields (NULL = not resolved) ─
    store_name = Column(String(255), nullable=True)
    purchase_date = Column(Date, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=True)

    # ── Source image ──────────────────────────
    image_url = Column(Text, nullable=True)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationships ─────────────────────────
    items = relationship(
        "ReceiptItem",
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="ReceiptItem.position",
    )

    def __repr__(self) -> str:
        return f"<Receipt {self.id} store={self.store_name!r} total={self.total_amount}>"


class ReceiptItem(Base):
    """One purchased line on a receipt."""

    __tablename__ = "receipt_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    receipt_id = Column(
        String(36),
        ForeignKey("receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)

    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=True)
    price = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    receipt = relationship("Receipt", back_populates="items")

    def __repr__(self) -> str:
        return f"<ReceiptItem {self.name!r} qty={self.quantity} price={self.price}>"
