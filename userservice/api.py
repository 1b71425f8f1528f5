"""FastAPI application exposing CRUD endpoints for the users table."""
from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .database import Database, StoreError, resolve_database_path
from .middleware import JSONContentTypeMiddleware
from .models import User

logger = logging.getLogger("userservice.api")

INVALID_USER_ID = "Invalid user ID"
INVALID_REQUEST_BODY = "Invalid request body"
USER_NOT_FOUND = "User not found"


class UserPayload(BaseModel):
    """Request body for create and update. Unknown keys, ``id`` included, are ignored."""

    name: str = ""
    email: str = ""


class UserResponse(BaseModel):
    id: int
    name: str
    email: str


def user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email)


_USER_ID_PATTERN = re.compile(r"[+-]?[0-9]+")
_SQLITE_INTEGER_MIN = -(2**63)
_SQLITE_INTEGER_MAX = 2**63 - 1


def parse_user_id(raw: str) -> Optional[int]:
    """Return ``raw`` as an integer id, or ``None`` when it is not one.

    Only optional sign and ASCII digits are accepted, within SQLite's
    64-bit INTEGER range.
    """

    if not _USER_ID_PATTERN.fullmatch(raw):
        return None
    value = int(raw)
    if not _SQLITE_INTEGER_MIN <= value <= _SQLITE_INTEGER_MAX:
        return None
    return value


def get_user_id(user_id: str = Path()) -> int:
    parsed = parse_user_id(user_id)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_USER_ID)
    return parsed


def _has_invalid_user_id(request: Request) -> bool:
    # Malformed JSON is rejected before the id dependency runs.
    raw_id = request.path_params.get("user_id")
    return raw_id is not None and parse_user_id(raw_id) is None


def create_app(
    *,
    database: Database | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    if database is None:
        db_path = resolve_database_path(os.getenv("USERS_DB_PATH"))
        database = Database(db_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    app = FastAPI(
        title="Users Service",
        description="CRUD API for the users table",
        version="1.0.0",
    )
    app.add_middleware(JSONContentTypeMiddleware)
    app.state.database = database

    def get_db() -> Database:
        return database

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/users", response_model=List[UserResponse])
    def list_users(db: Database = Depends(get_db)) -> List[UserResponse]:
        return [user_to_response(user) for user in db.list_users()]

    @app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(payload: UserPayload, db: Database = Depends(get_db)) -> UserResponse:
        user = db.create_user(payload.name, payload.email)
        return user_to_response(user)

    @app.get("/users/{user_id}", response_model=UserResponse)
    def read_user(user_id: int = Depends(get_user_id), db: Database = Depends(get_db)) -> UserResponse:
        try:
            user = db.get_user(user_id)
        except StoreError as exc:
            # Lookup failures of any kind are reported as a missing user.
            logger.warning("Lookup of user #%s failed: %s", user_id, exc)
            user = None
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)
        return user_to_response(user)

    @app.put("/users/{user_id}")
    def update_user(payload: UserPayload, user_id: int = Depends(get_user_id), db: Database = Depends(get_db)) -> Response:
        matched = db.update_user(user_id, name=payload.name, email=payload.email)
        if not matched:
            logger.debug("Update of user #%s matched no rows", user_id)
        return Response(status_code=status.HTTP_200_OK)

    @app.delete("/users/{user_id}")
    def delete_user(user_id: int = Depends(get_user_id), db: Database = Depends(get_db)) -> Response:
        deleted = db.delete_user(user_id)
        if not deleted:
            logger.debug("Delete of user #%s matched no rows", user_id)
        return Response(status_code=status.HTTP_200_OK)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        detail = INVALID_USER_ID if _has_invalid_user_id(request) else INVALID_REQUEST_BODY
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})

    @app.exception_handler(StoreError)
    async def handle_store_error(_: Request, exc: StoreError):
        logger.error("Store error: %s", exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})

    return app


__all__ = ["UserPayload", "UserResponse", "create_app", "get_user_id", "parse_user_id", "user_to_response"]
