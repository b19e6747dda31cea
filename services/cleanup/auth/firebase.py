"""
Auth provider backed by the Firebase Auth REST API (identitytoolkit v1).

  FirebaseAuthClient   stateless email/password sign-in and sign-up over httpx
  AuthSession          signed-in/out state + auth-change subscriptions
  ActorContext         actor id fed by an AuthSession subscription

The trip core never reads "the current user" globally. Callers take the
actor id from an ActorContext (or the X-User-Id header on the HTTP side) and
pass it explicitly into every engine / service call.

Credentials are pre-checked locally (email contains "@", password >= 6
chars) before any network call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from services.cleanup.trips.errors import RemoteUnavailable, TripError, ValidationFailure

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
MIN_PASSWORD_LENGTH = 6

SIGN_IN_HINT = "Add a valid email and a password with at least 6 characters."
REGISTER_HINT = "Use a valid email and pick a password over 6 characters."
SIGN_IN_FAILED = "We couldn't sign you in. Check your details and try again."
REGISTER_FAILED = "We couldn't register that account. Double-check your details and try again."
EMAIL_IN_USE = "That email already has an account. Sign in instead or use another address."


class AuthFailure(TripError):
    code = "AuthFailure"

    def __init__(self, message: str, provider_code: str = "") -> None:
        super().__init__(message)
        self.provider_code = provider_code


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    id_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.uid,
            "email": self.email,
            "idToken": self.id_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
        }


def check_credentials(email: str, password: str, hint: str = SIGN_IN_HINT) -> None:
    errors: dict[str, str] = {}
    if "@" not in (email or ""):
        errors["email"] = "Enter a valid email address."
    if len(password or "") < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Use at least {MIN_PASSWORD_LENGTH} characters."
    if errors:
        raise ValidationFailure(errors, message=hint)


class FirebaseAuthClient:
    """
    Thin async client for accounts:signInWithPassword / accounts:signUp.

    Pass ``http_client`` to share a connection pool (or inject a MockTransport
    in tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = IDENTITY_TOOLKIT_URL,
    ) -> None:
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._http = http_client
        self._base_url = base_url

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._base_url}/accounts:{endpoint}"
        params = {"key": self._api_key}
        try:
            if self._http is not None:
                return await self._http.post(url, params=params, json=payload, timeout=self._timeout_s)
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                return await client.post(url, params=params, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("auth_request_failed endpoint=%s error=%s", endpoint, exc)
            raise RemoteUnavailable("We couldn't reach the sign-in service. Please try again.") from exc

    @staticmethod
    def _provider_code(response: httpx.Response) -> str:
        try:
            message = response.json().get("error", {}).get("message", "")
        except ValueError:
            return ""
        # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
        return message.split(" ", 1)[0] if message else ""

    @staticmethod
    def _user(body: dict[str, Any]) -> AuthUser:
        return AuthUser(
            uid=body["localId"],
            email=body.get("email", ""),
            id_token=body.get("idToken", ""),
            refresh_token=body.get("refreshToken", ""),
            expires_in=int(body.get("expiresIn", 0) or 0),
        )

    async def sign_in(self, email: str, password: str) -> AuthUser:
        check_credentials(email, password, SIGN_IN_HINT)
        response = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        if response.status_code >= 500:
            raise RemoteUnavailable("We couldn't reach the sign-in service. Please try again.")
        if response.status_code != 200:
            code = self._provider_code(response)
            logger.info("auth_sign_in_rejected code=%s", code)
            raise AuthFailure(SIGN_IN_FAILED, code)
        user = self._user(response.json())
        logger.info("auth_signed_in user=%s", user.uid)
        return user

    async def sign_up(self, email: str, password: str) -> AuthUser:
        check_credentials(email, password, REGISTER_HINT)
        response = await self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        if response.status_code >= 500:
            raise RemoteUnavailable("We couldn't reach the sign-in service. Please try again.")
        if response.status_code != 200:
            code = self._provider_code(response)
            logger.info("auth_sign_up_rejected code=%s", code)
            raise AuthFailure(EMAIL_IN_USE if code == "EMAIL_EXISTS" else REGISTER_FAILED, code)
        user = self._user(response.json())
        logger.info("auth_registered user=%s", user.uid)
        return user


AuthListener = Callable[[AuthUser | None], None]


class AuthSession:
    """
    Signed-in/out state for one client.

    on_auth_change() calls the listener immediately with the current user,
    then again on every sign-in / sign-out.
    """

    def __init__(self, client: FirebaseAuthClient) -> None:
        self._client = client
        self._user: AuthUser | None = None
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> AuthUser | None:
        return self._user

    def current_actor_id(self) -> str | None:
        return self._user.uid if self._user else None

    def on_auth_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._user)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_user(self, user: AuthUser | None) -> None:
        self._user = user
        for listener in list(self._listeners):
            listener(user)

    async def sign_in(self, email: str, password: str) -> AuthUser:
        user = await self._client.sign_in(email, password)
        self._set_user(user)
        return user

    async def register_account(self, email: str, password: str) -> AuthUser:
        """Create the account. The session stays as it was; sign in afterwards."""
        return await self._client.sign_up(email, password)

    async def sign_out(self) -> None:
        if self._user is not None:
            logger.info("auth_signed_out user=%s", self._user.uid)
        self._set_user(None)


class ActorContext:
    """Current actor id, kept up to date by an auth-change subscription."""

    def __init__(self, session: AuthSession) -> None:
        self._actor_id: str | None = None
        self._unsubscribe = session.on_auth_change(self._update)

    def _update(self, user: AuthUser | None) -> None:
        self._actor_id = user.uid if user else None

    @property
    def actor_id(self) -> str | None:
        return self._actor_id

    def close(self) -> None:
        self._unsubscribe()
