from typing import Any, Optional

from pydantic import BaseModel, field_validator

from shifted_app.core.validation import clean_str

TEXT_MAX_LEN = 200
LONG_TEXT_MAX_LEN = 500


class WaitlistIn(BaseModel):
    email: Any = None
    city: Optional[str] = None
    is_shift_worker: Optional[bool] = None
    source: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    company: Optional[str] = None  # honeypot; humans never see it

    @field_validator(
        "city", "source", "utm_source", "utm_medium", "utm_campaign",
        "utm_term", "utm_content", "company",
        mode="before",
    )
    @classmethod
    def _short_text(cls, v):
        return clean_str(v, TEXT_MAX_LEN)

    @field_validator("referrer", mode="before")
    @classmethod
    def _long_text(cls, v):
        return clean_str(v, LONG_TEXT_MAX_LEN)

    @field_validator("is_shift_worker", mode="before")
    @classmethod
    def _loose_bool(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)


class WaitlistOut(BaseModel):
    ok: bool
    already: Optional[bool] = None
    error: Optional[str] = None
    retry_after: Optional[int] = None
