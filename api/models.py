"""
API request and response models for the newsletter REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in subscriptions/models.py,
which own the internal domain representation. Route handlers map between the two.
"""

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class IssueContent(BaseModel):
    html: str = Field(min_length=1)
    text: str = Field(min_length=1)


class NewsletterRequest(BaseModel):
    """Request body for POST /newsletters."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=998)  # RFC 5322 line limit
    content: IssueContent


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str


class PublishResponse(BaseModel):
    sent: int
    skipped: int


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
