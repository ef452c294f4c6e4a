"""
Principal resolution.

Authentication is done upstream by the session provider, which forwards the
signed-in user id in a trusted header. Handlers receive the result as an
explicit ``Principal`` and never read request state themselves.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from backend.config import Settings, get_settings
from backend.errors import Unauthorized


@dataclass(frozen=True)
class Principal:
    user_id: str


def get_principal(
    request: Request, settings: Settings = Depends(get_settings)
) -> Principal:
    user_id = (request.headers.get(settings.auth_header) or "").strip()
    if not user_id:
        raise Unauthorized()
    return Principal(user_id=user_id)
