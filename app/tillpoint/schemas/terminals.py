from datetime import datetime

from pydantic import BaseModel, Field


class TerminalCreateRequest(BaseModel):
    store_id: str
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    is_active: bool = True


class TerminalResponse(BaseModel):
    id: str
    tenant_id: str
    store_id: str
    code: str
    name: str
    is_active: bool
    created_at: datetime


class TerminalListResponse(BaseModel):
    rows: list[TerminalResponse]
    total: int
