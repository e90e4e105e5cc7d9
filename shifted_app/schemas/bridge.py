from typing import Literal, Optional

from pydantic import BaseModel, field_validator


class RecoveryBridgeIn(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @field_validator("access_token", "refresh_token", mode="before")
    @classmethod
    def _as_text(cls, v):
        return None if v is None else str(v)


class RecoveryBridgeOut(BaseModel):
    rid: str


class RecoveryTokensOut(BaseModel):
    access_token: str
    refresh_token: str


class BridgeResolveIn(BaseModel):
    query: str = ""
    fragment: str = ""


class BridgeOutcome(BaseModel):
    action: Literal["error", "open_app", "manual"]
    message: str
    redirect_url: Optional[str] = None
    fallback_url: str
