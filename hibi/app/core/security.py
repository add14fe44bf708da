from __future__ import annotations

from fastapi import Header, HTTPException, Request, status


def enforce_webhook_secret(
    request: Request,
    token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
) -> None:
    """Validate Telegram secret header when configured."""

    settings = request.app.state.settings
    expected = getattr(settings, "webhook_secret_token", None)
    if expected and token != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid webhook token",
        )


async def require_admin_token(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    admin_header: str | None = Header(default=None, alias="X-Hibi-Admin-Token"),
) -> None:
    settings = request.app.state.settings
    expected = getattr(settings, "admin_api_token", None)
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="admin disabled",
        )
    token_value: str | None = None
    if authorization and authorization.lower().startswith("bearer "):
        token_value = authorization.split(" ", 1)[1].strip()
    elif admin_header:
        token_value = admin_header.strip()
    if token_value != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="admin token invalid")
