"""Receipt request/response schemas (camelCase on the wire)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ItemResponse(CamelModel):
    """One persisted line item."""

    id: int
    name: str
    quantity: int | None = None
    price: float | None = None
    receipt_id: str
    created_at: datetime


class ReceiptResponse(CamelModel):
    """A receipt with its items; unresolved fields are null."""

    id: str
    store_name: str | None = None
    purchase_date: date | None = None
    total_amount: float | None = None
    image_url: str | None = None
    items: list[ItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class UploadResponse(CamelModel):
    """Returned immediately after an upload is queued."""

    job_id: str
    receipt_id: str
    status: str = "processing"
    message: str


class ItemInput(CamelModel):
    """One item in a manual correction."""

    name: str = Field(..., min_length=1, max_length=255)
    quantity: int | None = Field(default=None, ge=1, le=999)
    price: float | None = Field(default=None, gt=0, lt=1_000_000)


class UpdateReceiptRequest(CamelModel):
    """Manual correction; omitted fields are left unchanged, ``items`` replaces all items."""

    store_name: str | None = Field(default=None, max_length=255)
    purchase_date: date | None = None
    total_amount: float | None = Field(default=None, ge=0)
    items: list[ItemInput] | None = None
