"""
Cupid: Auth API

Registration (JSON or multipart with an optional avatar) and login.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.api.deps import get_account_service
from app.database import get_db
from app.errors import InvalidInput
from app.models import User
from app.schemas.user import AuthResponse, AuthUser, LoginRequest, RegisterRequest
from app.services.account_service import AccountService

logger = structlog.get_logger("cupid.api.auth")

router = APIRouter()

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _auth_response(token: str, user: User) -> AuthResponse:
    return AuthResponse(
        token=token,
        user=AuthUser(id=user.id, first_name=user.first_name, avatar=user.avatar),
    )


def _invalid_fields(exc: ValidationError) -> InvalidInput:
    """``Missing fields: ...`` when only absences, else ``Invalid fields: ...``."""
    errors = exc.errors()
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in errors})
    logger.info("register_validation_failed", fields=fields)
    if all(err["type"] == "missing" for err in errors):
        return InvalidInput(f"Missing fields: {', '.join(fields)}")
    return InvalidInput(f"Invalid fields: {', '.join(fields)}")


async def _read_body(request: Request) -> tuple[dict, UploadFile | None]:
    """Return the submitted fields and the avatar upload, if any."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        avatar = form.get("avatar")
        fields = {k: v for k, v in form.items() if not isinstance(v, UploadFile)}
        return fields, avatar if isinstance(avatar, UploadFile) else None

    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Missing fields")
    if not isinstance(body, dict):
        raise InvalidInput("Missing fields")
    return body, None


# ──────────────────────────────────────────────────────────────────────────────
# POST /register: Create an account
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/register",
    response_model=AuthResponse,
    summary="Register a new user",
)
async def register(
    request: Request,
    accounts: AccountService = Depends(get_account_service),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create an account and return a bearer token.

    Accepts ``multipart/form-data`` (with an optional ``avatar`` file) or a
    JSON body with the same fields.
    """
    fields, upload = await _read_body(request)

    try:
        payload = RegisterRequest.model_validate(fields)
    except ValidationError as exc:
        raise _invalid_fields(exc)

    avatar = None
    if upload is not None and upload.filename:
        avatar = (await upload.read(), upload.filename, upload.content_type)

    token, user = await accounts.register(payload, db, avatar=avatar)
    return _auth_response(token, user)


# ──────────────────────────────────────────────────────────────────────────────
# POST /login: Exchange credentials for a token
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email and password",
)
async def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    token, user = await accounts.login(payload.email, payload.password, db)
    return _auth_response(token, user)
