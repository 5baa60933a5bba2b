from __future__ import annotations

from secrets import compare_digest

from fastapi import Depends, Header, HTTPException, status

from hotkeys.core.config import Settings, get_settings


def verify_cron_secret(
    authorization: str | None = Header(default=None),
    x_cron_auth: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Require the shared cron secret as a Bearer token or X-Cron-Auth header."""
    expected_secret = settings.CRON_SECRET
    if not expected_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret is not configured.",
        )

    supplied = x_cron_auth
    if authorization and authorization.lower().startswith("bearer "):
        supplied = authorization[7:].strip()

    if not supplied or not compare_digest(supplied, expected_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized cron invocation.",
        )
