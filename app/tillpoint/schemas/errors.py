from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


class ApiValidationErrorResponse(ApiErrorResponse):
    """``details.errors`` lists each rejected field; service-level checks report a single ``field``."""

    details: dict | None = None
