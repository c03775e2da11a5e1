"""
Pydantic schemas for request validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    MAX_INSTRUCTIONS_LENGTH,
    MAX_ITEM_PRICE,
    MAX_ITEM_QUANTITY,
    MAX_ITEMS_PER_ORDER,
)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=1, max_length=1024)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase to ensure consistent authentication."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class OrderItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    name_albanian: str | None = Field(None, alias="nameAlbanian", max_length=200)
    price: float = Field(..., gt=0, le=MAX_ITEM_PRICE)
    quantity: int = Field(..., ge=1, le=MAX_ITEM_QUANTITY)
    special_instructions: str | None = Field(
        None, alias="specialInstructions", max_length=MAX_INSTRUCTIONS_LENGTH
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class CreateOrderRequest(BaseModel):
    """Customer order. A client-supplied total, if any, is ignored."""

    model_config = ConfigDict(populate_by_name=True)

    venue_id: str = Field(..., alias="venueId", min_length=1, max_length=64)
    table_number: str = Field(..., alias="tableNumber", min_length=1, max_length=32)
    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=MAX_ITEMS_PER_ORDER)
    customer_name: str | None = Field(None, alias="customerName", max_length=200)
    special_instructions: str | None = Field(
        None, alias="specialInstructions", max_length=MAX_INSTRUCTIONS_LENGTH
    )

    @field_validator("table_number", mode="before")
    @classmethod
    def coerce_table_number(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class UpdateStatusRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=32)
