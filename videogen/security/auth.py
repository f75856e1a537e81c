from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import Depends, Header, HTTPException, Request, status


@dataclass(slots=True, frozen=True)
class CurrentUser:
    identity: str


class AuthProvider(Protocol):
    def resolve(self, token: str) -> CurrentUser | None:
        ...


class StaticTokenAuthProvider:
    """Resolves bearer tokens from a fixed token -> identity table."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def resolve(self, token: str) -> CurrentUser | None:
        identity = self._tokens.get(token)
        if not identity:
            return None
        return CurrentUser(identity=identity)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_current_user(
    authorization: str | None = Header(default=None),
    provider: AuthProvider = Depends(get_auth_provider),
) -> CurrentUser:
    token = _bearer_token(authorization)
    user = provider.resolve(token) if token else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
