"""
Adapter for the Supabase auth/database provider and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Protocol

import httpx
from supabase import (
    AuthError,
    Client,
    ClientOptions,
    PostgrestAPIError,
    SupabaseException,
    create_client,
)

from scrumboard.errors import BackendError, ConfigurationError

logger = logging.getLogger(__name__)

SCRUMS_TABLE = "scrums"
USERS_TABLE = "users"
ADMIN_PAGE_SIZE = 1000


class BackendClient(Protocol):
    """Operations the HTTP handlers need from the provider."""

    def list_scrums(self) -> list[dict]:
        ...

    def insert_scrum(self, record: dict) -> dict:
        ...

    def list_users(self) -> list[dict]:
        ...

    def insert_user(self, record: dict) -> dict:
        ...

    def sign_up(self, email: str, password: str) -> "SessionResult":
        ...

    def sign_in(self, email: str, password: str) -> "SessionResult":
        ...

    def get_user_from_token(self, token: str) -> dict:
        ...

    def email_exists(self, email: str) -> bool:
        ...


@dataclass
class SessionResult:
    """User identity plus session token returned by an auth call.

    ``session`` is None when the account still awaits email confirmation.
    """

    user: Optional[dict]
    session: Optional[dict]

    @classmethod
    def from_auth_response(cls, response: Any) -> "SessionResult":
        user = getattr(response, "user", None)
        session = getattr(response, "session", None)
        return cls(user=_dump(user), session=_dump(session))

    def as_dict(self) -> dict:
        return {"user": self.user, "session": self.session}


def _dump(model: Any) -> Optional[dict]:
    if model is None:
        return None
    if isinstance(model, dict):
        return model
    return model.model_dump(mode="json")


def _emails_match(candidate: Optional[str], email: str) -> bool:
    return bool(candidate) and candidate.lower() == email.lower()


def _first_row(response: Any, operation: str) -> dict:
    # Row-level security can hide a freshly inserted row from the caller.
    if not response.data:
        logger.error("Supabase error during %s: no row returned", operation)
        raise BackendError("Insert returned no rows", operation=operation)
    return response.data[0]


@contextmanager
def _provider_call(operation: str) -> Iterator[None]:
    try:
        yield
    except (AuthError, PostgrestAPIError, SupabaseException, httpx.HTTPError) as exc:
        message = getattr(exc, "message", None) or str(exc)
        logger.error("Supabase error during %s: %s", operation, message)
        raise BackendError(message, operation=operation) from exc


class SupabaseBackend:
    """
    Supabase-backed adapter holding a public client and an admin client.

    Both clients are built lazily on first use so the app can start (and
    serve the SPA) before credentials are available.
    """

    def __init__(
        self,
        url: Optional[str],
        key: Optional[str],
        admin_key: Optional[str],
    ):
        self.url = url
        self.key = key
        self.admin_key = admin_key
        self._public: Optional[Client] = None
        self._admin: Optional[Client] = None

    def ensure_initialized(self) -> None:
        if self._public is not None and self._admin is not None:
            return

        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", self.url),
                ("SUPABASE_KEY", self.key),
                ("SUPABASE_ADMIN_KEY", self.admin_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing Supabase environment variables: {', '.join(missing)}"
            )

        try:
            public = create_client(self.url, self.key)
            # The admin client acts for the server, never for an end user.
            admin = create_client(
                self.url,
                self.admin_key,
                options=ClientOptions(
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
        except SupabaseException as exc:
            message = getattr(exc, "message", None) or str(exc)
            raise ConfigurationError(
                f"Invalid Supabase configuration: {message}"
            ) from exc
        self._public = public
        self._admin = admin
        logger.info("Initialized Supabase clients for %s", self.url)

    def list_scrums(self) -> list[dict]:
        self.ensure_initialized()
        with _provider_call("list_scrums"):
            response = self._public.table(SCRUMS_TABLE).select("*").execute()
        return response.data

    def insert_scrum(self, record: dict) -> dict:
        self.ensure_initialized()
        with _provider_call("insert_scrum"):
            response = self._public.table(SCRUMS_TABLE).insert([record]).execute()
        return _first_row(response, "insert_scrum")

    def list_users(self) -> list[dict]:
        self.ensure_initialized()
        with _provider_call("list_users"):
            response = self._public.table(USERS_TABLE).select("*").execute()
        return response.data

    def insert_user(self, record: dict) -> dict:
        self.ensure_initialized()
        with _provider_call("insert_user"):
            response = self._public.table(USERS_TABLE).insert([record]).execute()
        return _first_row(response, "insert_user")

    def sign_up(self, email: str, password: str) -> SessionResult:
        self.ensure_initialized()
        with _provider_call("sign_up"):
            response = self._public.auth.sign_up(
                {"email": email, "password": password}
            )
        return SessionResult.from_auth_response(response)

    def sign_in(self, email: str, password: str) -> SessionResult:
        self.ensure_initialized()
        with _provider_call("sign_in"):
            response = self._public.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        return SessionResult.from_auth_response(response)

    def get_user_from_token(self, token: str) -> dict:
        self.ensure_initialized()
        with _provider_call("get_user_from_token"):
            response = self._public.auth.get_user(token)
        if response is None or response.user is None:
            logger.error("Supabase error during get_user_from_token: no user")
            raise BackendError(
                "Invalid or expired token", operation="get_user_from_token"
            )
        return _dump(response.user)

    def email_exists(self, email: str) -> bool:
        """
        Check every account via the admin API, comparing addresses
        case-insensitively.
        """
        self.ensure_initialized()
        page = 1
        while True:
            with _provider_call("email_exists"):
                users = self._admin.auth.admin.list_users(
                    page=page, per_page=ADMIN_PAGE_SIZE
                )
            if not users:
                return False
            if any(_emails_match(user.email, email) for user in users):
                return True
            if len(users) < ADMIN_PAGE_SIZE:
                return False
            page += 1


class InMemoryBackend:
    """Simple in-memory provider for development and tests."""

    def __init__(self, *, auto_confirm: bool = False):
        self.auto_confirm = auto_confirm
        self.scrums: list[dict] = []
        self.users: list[dict] = []
        self.accounts: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.calls: list[str] = []
        self.fail_with: Optional[str] = None

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None:
            logger.error(
                "In-memory provider error during %s: %s", operation, self.fail_with
            )
            raise BackendError(self.fail_with, operation=operation)

    def _find_account(self, email: str) -> Optional[dict]:
        for account in self.accounts.values():
            if _emails_match(account["email"], email):
                return account
        return None

    @staticmethod
    def _public_user(account: dict) -> dict:
        return {
            "id": account["id"],
            "email": account["email"],
            "email_confirmed_at": account["confirmed_at"],
            "created_at": account["created_at"],
        }

    def _issue_session(self, account: dict) -> dict:
        token = secrets.token_urlsafe(32)
        self.tokens[token] = account["id"]
        return {
            "access_token": token,
            "refresh_token": secrets.token_urlsafe(16),
            "token_type": "bearer",
            "expires_in": 3600,
            "user": self._public_user(account),
        }

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.scrums.clear()
        self.users.clear()
        self.accounts.clear()
        self.tokens.clear()
        self.calls.clear()
        self.fail_with = None

    def confirm_email(self, email: str) -> None:
        account = self._find_account(email)
        if account and account["confirmed_at"] is None:
            account["confirmed_at"] = time.time()

    def list_scrums(self) -> list[dict]:
        self._record("list_scrums")
        return [dict(scrum) for scrum in self.scrums]

    def insert_scrum(self, record: dict) -> dict:
        self._record("insert_scrum")
        stored = {**record, "id": uuid.uuid4().hex, "created_at": time.time()}
        self.scrums.append(stored)
        return dict(stored)

    def list_users(self) -> list[dict]:
        self._record("list_users")
        return [dict(user) for user in self.users]

    def insert_user(self, record: dict) -> dict:
        self._record("insert_user")
        stored = {**record, "id": uuid.uuid4().hex, "created_at": time.time()}
        self.users.append(stored)
        return dict(stored)

    def sign_up(self, email: str, password: str) -> SessionResult:
        self._record("sign_up")
        if self._find_account(email):
            raise BackendError("User already registered", operation="sign_up")
        now = time.time()
        account = {
            "id": uuid.uuid4().hex,
            "email": email.lower(),
            "password": password,
            "confirmed_at": now if self.auto_confirm else None,
            "created_at": now,
        }
        self.accounts[account["id"]] = account
        session = self._issue_session(account) if self.auto_confirm else None
        return SessionResult(user=self._public_user(account), session=session)

    def sign_in(self, email: str, password: str) -> SessionResult:
        self._record("sign_in")
        account = self._find_account(email)
        if not account or account["password"] != password:
            raise BackendError("Invalid login credentials", operation="sign_in")
        if account["confirmed_at"] is None:
            raise BackendError("Email not confirmed", operation="sign_in")
        return SessionResult(
            user=self._public_user(account), session=self._issue_session(account)
        )

    def get_user_from_token(self, token: str) -> dict:
        self._record("get_user_from_token")
        account = self.accounts.get(self.tokens.get(token, ""))
        if not account:
            raise BackendError(
                "Invalid or expired token", operation="get_user_from_token"
            )
        return self._public_user(account)

    def email_exists(self, email: str) -> bool:
        self._record("email_exists")
        return self._find_account(email) is not None
