# ============================================================
# schemas.py — Request bodies and the response envelope
# ============================================================
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class StoreParcelBookingRequest(_Request):
    rpo_address: str = Field(min_length=1)
    phone: str = Field(min_length=1, max_length=20)
    post_code: str = Field(min_length=1, max_length=20)
    rpo_name: str = Field(min_length=1, max_length=120)


class BarcodeRequest(_Request):
    barcode: str = Field(min_length=1, max_length=50)


# Every outcome, success or failure, goes out in this shape
class ApiResponse(BaseModel):
    status: int
    message: str
    data: Any = None
    upstream: Optional[dict] = None
