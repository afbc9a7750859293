"""
Receipt repository containing all data-access operations for the
receipts and receipt_items tables.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from receipt_ocr.core.errors import ReceiptNotFoundError
from receipt_ocr.db.models.receipt import Receipt, ReceiptItem
from receipt_ocr.extraction.models import ExtractedData, LineItem


def _money(value: float | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(round(value, 2)))


def _build_items(items: list[LineItem]) -> list[ReceiptItem]:
    return [
        ReceiptItem(
            position=position,
            name=item.name,
            quantity=item.quantity,
            price=_money(item.price),
        )
        for position, item in enumerate(items)
    ]


async def create_placeholder_receipt(db: AsyncSession, *, image_url: str) -> Receipt:
    """Create an empty receipt row for an upload that has not been recognised yet."""
    receipt = Receipt(image_url=image_url, items=[])
    db.add(receipt)
    await db.flush()
    return receipt


async def get_receipt(db: AsyncSession, receipt_id: str) -> Receipt | None:
    """Fetch a receipt with its items (ordered by position)."""
    stmt = (
        select(Receipt)
        .where(Receipt.id == receipt_id)
        .options(selectinload(Receipt.items))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_receipts(
    db: AsyncSession,
    *,
    store_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[Receipt]:
    """List receipts, newest purchase first, with optional store/date filters."""
    stmt = select(Receipt).options(selectinload(Receipt.items))
    if store_name:
        stmt = stmt.where(func.lower(Receipt.store_name).contains(store_name.lower()))
    if start_date is not None:
        stmt = stmt.where(Receipt.purchase_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Receipt.purchase_date <= end_date)
    stmt = (
        stmt.order_by(Receipt.purchase_date.desc().nulls_last(), Receipt.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def replace_extracted_fields(
    db: AsyncSession,
    receipt_id: str,
    data: ExtractedData,
) -> Receipt:
    """
    Overwrite a receipt's extracted fields and items.

    Existing items are deleted and recreated from ``data.items``, so
    re-running recognition for the same receipt never duplicates items.

    Raises:
        ReceiptNotFoundError: No receipt with this id.
    """
    receipt = await get_receipt(db, receipt_id)
    if receipt is None:
        raise ReceiptNotFoundError(f"Receipt {receipt_id} not found", details={"receipt_id": receipt_id})

    receipt.store_name = data.store_name
    receipt.purchase_date = data.purchase_date
    receipt.total_amount = _money(data.total_amount)

    receipt.items.clear()
    await db.flush()
    receipt.items.extend(_build_items(data.items))
    await db.flush()
    return receipt


async def update_receipt(
    db: AsyncSession,
    receipt_id: str,
    *,
    items: list[LineItem] | None = None,
    **fields: object,
) -> Receipt | None:
    """Apply a manual correction; ``items`` (when given) replaces all items."""
    receipt = await get_receipt(db, receipt_id)
    if receipt is None:
        return None

    allowed = {"store_name", "purchase_date", "total_amount"}
    for key, value in fields.items():
        if key not in allowed:
            continue
        if key == "total_amount" and value is not None:
            value = _money(float(value))
        setattr(receipt, key, value)

    if items is not None:
        receipt.items.clear()
        await db.flush()
        receipt.items.extend(_build_items(items))

    await db.flush()
    return receipt


async def delete_receipt(db: AsyncSession, receipt_id: str) -> Receipt | None:
    """Hard-delete a receipt (items cascade).  Returns the deleted row."""
    receipt = await get_receipt(db, receipt_id)
    if receipt is None:
        return None
    await db.delete(receipt)
    await db.flush()
    return receipt


async def delete_item(db: AsyncSession, item_id: int) -> bool:
    """Hard-delete one item. Returns True if a row was deleted."""
    item = await db.get(ReceiptItem, item_id)
    if item is None:
        return False
    await db.delete(item)
    await db.flush()
    return True
