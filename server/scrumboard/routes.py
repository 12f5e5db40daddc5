"""
HTTP routes for the scrumboard API.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from scrumboard.dependencies import get_backend
from scrumboard.errors import BackendError, ConfigurationError, ValidationError
from scrumboard.provider import BackendClient
from scrumboard.schemas import (
    Credentials,
    ErrorResponse,
    PendingConfirmationResponse,
    ScrumListResponse,
    SessionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

AUTH_UNAVAILABLE_MESSAGE = "Authentication service is not configured."
SIGNUP_PENDING_MESSAGE = (
    "Account created. Please check your email to confirm registration."
)
REGISTER_PENDING_MESSAGE = "Account created! Please check your email to log in."

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def read_payload(request: Request) -> dict:
    """
    Parse a JSON or form-encoded request body into a dict. An empty body, or
    one of any other content type, is an empty dict.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)

    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != "application/json" and not media_type.endswith("+json"):
        return {}

    body = await request.body()
    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Request body must be valid JSON."
        ) from exc
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=400, detail="Request body must be a JSON object."
        )
    return payload


def _require_credentials(payload: dict) -> Credentials:
    credentials = Credentials.from_payload(payload)
    missing = credentials.missing_fields()
    if missing:
        raise ValidationError(missing)
    return credentials


def _pending_confirmation(message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=202, content={"message": message, **extra})


@router.get("/scrums", response_model=ScrumListResponse, responses=ERROR_RESPONSES)
def get_scrums(backend: BackendClient = Depends(get_backend)):
    try:
        scrums = backend.list_scrums()
    except Exception as exc:
        logger.exception("Error handling get_scrums: %s", exc)
        raise HTTPException(
            status_code=500, detail="Failed to retrieve scrum data."
        ) from exc
    return ScrumListResponse(scrums=scrums)


@router.post("/scrums", status_code=201, responses=ERROR_RESPONSES)
def post_scrum(
    payload: dict = Depends(read_payload),
    backend: BackendClient = Depends(get_backend),
):
    """
    Store a scrum record as-is; the provider assigns its identity.
    """
    try:
        return backend.insert_scrum(payload)
    except Exception as exc:
        logger.exception("Error handling post_scrum: %s", exc)
        raise HTTPException(
            status_code=500, detail="Failed to create new scrum."
        ) from exc


@router.post(
    "/auth/signup",
    status_code=201,
    response_model=SessionResponse,
    responses={202: {"model": PendingConfirmationResponse}, **ERROR_RESPONSES},
)
def sign_up(
    payload: dict = Depends(read_payload),
    backend: BackendClient = Depends(get_backend),
):
    credentials = _require_credentials(payload)
    try:
        result = backend.sign_up(credentials.email, credentials.password)
    except BackendError as exc:
        logger.error("Error handling sign_up: %s", exc)
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except ConfigurationError as exc:
        logger.critical("Error handling sign_up: %s", exc)
        raise HTTPException(status_code=400, detail=AUTH_UNAVAILABLE_MESSAGE) from exc

    if result.user and not result.session:
        return _pending_confirmation(SIGNUP_PENDING_MESSAGE)
    return SessionResponse(**result.as_dict())


@router.post(
    "/auth/signin", response_model=SessionResponse, responses=ERROR_RESPONSES
)
def sign_in(
    payload: dict = Depends(read_payload),
    backend: BackendClient = Depends(get_backend),
):
    credentials = _require_credentials(payload)
    try:
        result = backend.sign_in(credentials.email, credentials.password)
    except BackendError as exc:
        logger.error("Error handling sign_in: %s", exc)
        raise HTTPException(status_code=401, detail=exc.message) from exc
    except ConfigurationError as exc:
        logger.critical("Error handling sign_in: %s", exc)
        raise HTTPException(status_code=401, detail=AUTH_UNAVAILABLE_MESSAGE) from exc

    if not result.session:
        raise HTTPException(
            status_code=401, detail="Invalid credentials or user not confirmed."
        )
    return SessionResponse(**result.as_dict())


@router.post(
    "/auth/login-or-register",
    response_model=SessionResponse,
    responses={202: {"model": PendingConfirmationResponse}, **ERROR_RESPONSES},
)
def login_or_register(
    payload: dict = Depends(read_payload),
    backend: BackendClient = Depends(get_backend),
):
    """
    Sign in when the email already has an account, otherwise register it.

    An existing account with a wrong password is a 401; it never falls
    through to registration.
    """
    credentials = _require_credentials(payload)
    try:
        if backend.email_exists(credentials.email):
            try:
                result = backend.sign_in(credentials.email, credentials.password)
            except BackendError as exc:
                raise HTTPException(
                    status_code=401, detail=exc.message or "Invalid credentials."
                ) from exc
        else:
            try:
                result = backend.sign_up(credentials.email, credentials.password)
            except BackendError as exc:
                raise HTTPException(
                    status_code=400, detail=exc.message or "Registration failed."
                ) from exc
            if result.user and not result.session:
                return _pending_confirmation(
                    REGISTER_PENDING_MESSAGE, requiresConfirmation=True
                )
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Unexpected error in login_or_register: %s", exc)
        raise HTTPException(
            status_code=500, detail="An unexpected server error occurred."
        ) from exc

    return SessionResponse(**result.as_dict())
