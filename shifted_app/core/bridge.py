# shifted_app/core/bridge.py
"""
Auth bridge: turns whatever the auth provider put on the callback URL into a
link the mobile app understands.

The provider sends either ``?code=...`` (PKCE) or
``#access_token=...&refresh_token=...`` (implicit / email confirmation), or
``error`` / ``error_description`` when the link is stale. The fragment never
reaches the server on its own, so the callback page forwards it.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Literal, Optional
from urllib.parse import parse_qsl, urlencode

PayloadKind = Literal["error", "tokens", "code", "none"]

# carried from the provider URL onto the app link untouched
PASSTHROUGH_KEYS = ("type", "app")


@dataclass
class BridgePayload:
    kind: PayloadKind
    params: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    code: Optional[str] = None

    @property
    def passthrough(self) -> Dict[str, str]:
        return {k: self.params[k] for k in PASSTHROUGH_KEYS if self.params.get(k)}


def merge_params(query: str = "", fragment: str = "") -> Dict[str, str]:
    """Query and fragment as one dict; the fragment wins on duplicate keys."""
    merged: Dict[str, str] = {}
    for raw in (query, fragment):
        raw = (raw or "").lstrip("?#")
        if not raw:
            continue
        for k, v in parse_qsl(raw, keep_blank_values=False):
            merged[k] = v
    return merged


def classify(params: Dict[str, str]) -> BridgePayload:
    # order matters: error, then tokens, then code
    error = params.get("error_description") or params.get("error") or params.get("error_code")
    if error:
        return BridgePayload(kind="error", params=params, error=error)

    access = params.get("access_token")
    refresh = params.get("refresh_token")
    if access and refresh:
        return BridgePayload(kind="tokens", params=params, access_token=access, refresh_token=refresh)

    code = params.get("code")
    if code:
        return BridgePayload(kind="code", params=params, code=code)

    return BridgePayload(kind="none", params=params)


def handoff_params(
    payload: BridgePayload,
    next_step: str,
    rid: Optional[str] = None,
) -> Dict[str, str]:
    """
    Query params for the app link. ``rid`` replaces the raw tokens when the
    tokens were parked server-side first.
    """
    out: Dict[str, str] = {"next": next_step}
    out.update(payload.passthrough)

    if payload.kind == "tokens":
        if rid:
            out["rid"] = rid
        else:
            out["access_token"] = payload.access_token or ""
            out["refresh_token"] = payload.refresh_token or ""
    elif payload.kind == "code":
        out["code"] = payload.code or ""
    return out


def universal_link(site_url: str, params: Dict[str, str]) -> str:
    base = f"{site_url.rstrip('/')}/open"
    return f"{base}?{urlencode(params)}" if params else base


def scheme_link(scheme: str, params: Dict[str, str]) -> str:
    base = f"{scheme}://auth/callback"
    return f"{base}?{urlencode(params)}" if params else base
