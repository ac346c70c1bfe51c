"""Shared dependencies for authentication and ledger access."""

from typing import Annotated
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

import auth
from ledger.entities import User
from ledger.store import LedgerStore


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_ledger_store(request: Request) -> LedgerStore:
    """The process-wide ledger store created at startup."""
    return request.app.state.ledger_store


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)]
) -> User:
    """Get the current authenticated user from the JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = auth.decode_access_token(token)
    if user_id is None:
        raise credentials_exception
    user = store.users.get_user(user_id)
    if user is None:
        raise credentials_exception
    return user
