"""
Firebase Auth REST client, session and actor context.

Validates:
- credentials pre-checked locally; no request is sent when they fail
- sign-in / sign-up payloads and user mapping
- EMAIL_EXISTS and other provider errors -> user-facing messages
- transport errors and 5xx -> RemoteUnavailable
- AuthSession notifies listeners; registration leaves the session untouched
- ActorContext follows sign-in / sign-out and stops after close()
"""

import json

import httpx
import pytest

from services.cleanup.auth.firebase import (
    EMAIL_IN_USE,
    REGISTER_FAILED,
    SIGN_IN_FAILED,
    ActorContext,
    AuthFailure,
    AuthSession,
    FirebaseAuthClient,
)
from services.cleanup.trips.errors import RemoteUnavailable, ValidationFailure

pytestmark = pytest.mark.asyncio

_OK_BODY = {
    "localId": "uid-123",
    "email": "kai@example.com",
    "idToken": "id-token",
    "refreshToken": "refresh-token",
    "expiresIn": "3600",
}


def _client(handler, requests=None):
    def _recording(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(_recording))
    return FirebaseAuthClient("test-key", http_client=http)


def _error(message: str, status: int = 400):
    return lambda request: httpx.Response(status, json={"error": {"code": status, "message": message}})


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class TestFirebaseAuthClient:
    async def test_sign_in(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json=_OK_BODY), requests)
        user = await client.sign_in("kai@example.com", "secret1")

        assert user.uid == "uid-123"
        assert user.expires_in == 3600
        request = requests[0]
        assert request.url.path.endswith("/accounts:signInWithPassword")
        assert request.url.params["key"] == "test-key"
        assert json.loads(request.content) == {
            "email": "kai@example.com",
            "password": "secret1",
            "returnSecureToken": True,
        }

    @pytest.mark.parametrize(
        "email, password, fields",
        [
            ("kai.example.com", "secret1", {"email"}),
            ("kai@example.com", "12345", {"password"}),
            ("", "", {"email", "password"}),
        ],
    )
    async def test_precheck_blocks_request(self, email, password, fields):
        requests = []
        client = _client(lambda r: httpx.Response(200, json=_OK_BODY), requests)
        with pytest.raises(ValidationFailure) as exc_info:
            await client.sign_in(email, password)
        assert set(exc_info.value.errors) == fields
        assert requests == []

    async def test_bad_credentials(self):
        client = _client(_error("INVALID_LOGIN_CREDENTIALS"))
        with pytest.raises(AuthFailure) as exc_info:
            await client.sign_in("kai@example.com", "secret1")
        assert exc_info.value.message == SIGN_IN_FAILED
        assert exc_info.value.provider_code == "INVALID_LOGIN_CREDENTIALS"

    async def test_sign_up_email_exists(self):
        client = _client(_error("EMAIL_EXISTS"))
        with pytest.raises(AuthFailure) as exc_info:
            await client.sign_up("kai@example.com", "secret1")
        assert exc_info.value.message == EMAIL_IN_USE

    async def test_sign_up_other_failure(self):
        client = _client(_error("WEAK_PASSWORD : Password should be at least 6 characters"))
        with pytest.raises(AuthFailure) as exc_info:
            await client.sign_up("kai@example.com", "secret1")
        assert exc_info.value.message == REGISTER_FAILED
        assert exc_info.value.provider_code == "WEAK_PASSWORD"

    async def test_sign_up_path(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json=_OK_BODY), requests)
        await client.sign_up("kai@example.com", "secret1")
        assert requests[0].url.path.endswith("/accounts:signUp")

    async def test_server_error_is_retryable(self):
        client = _client(lambda r: httpx.Response(503, text="unavailable"))
        with pytest.raises(RemoteUnavailable):
            await client.sign_in("kai@example.com", "secret1")

    async def test_transport_error(self):
        def _boom(request):
            raise httpx.ConnectError("no route", request=request)

        with pytest.raises(RemoteUnavailable):
            await _client(_boom).sign_in("kai@example.com", "secret1")


# ---------------------------------------------------------------------------
# Session + actor context
# ---------------------------------------------------------------------------

class TestAuthSession:
    async def test_listener_called_immediately_and_on_change(self):
        session = AuthSession(_client(lambda r: httpx.Response(200, json=_OK_BODY)))
        seen = []
        unsubscribe = session.on_auth_change(seen.append)
        await session.sign_in("kai@example.com", "secret1")
        await session.sign_out()
        unsubscribe()
        await session.sign_in("kai@example.com", "secret1")

        assert [u.uid if u else None for u in seen] == [None, "uid-123", None]

    async def test_current_actor_id(self):
        session = AuthSession(_client(lambda r: httpx.Response(200, json=_OK_BODY)))
        assert session.current_actor_id() is None
        await session.sign_in("kai@example.com", "secret1")
        assert session.current_actor_id() == "uid-123"

    async def test_register_does_not_sign_in(self):
        session = AuthSession(_client(lambda r: httpx.Response(200, json=_OK_BODY)))
        user = await session.register_account("kai@example.com", "secret1")
        assert user.uid == "uid-123"
        assert session.current_actor_id() is None

    async def test_failed_sign_in_keeps_state(self):
        session = AuthSession(_client(_error("INVALID_PASSWORD")))
        with pytest.raises(AuthFailure):
            await session.sign_in("kai@example.com", "secret1")
        assert session.current_user is None


class TestActorContext:
    async def test_follows_session(self):
        session = AuthSession(_client(lambda r: httpx.Response(200, json=_OK_BODY)))
        context = ActorContext(session)
        assert context.actor_id is None

        await session.sign_in("kai@example.com", "secret1")
        assert context.actor_id == "uid-123"

        await session.sign_out()
        assert context.actor_id is None

    async def test_close_stops_updates(self):
        session = AuthSession(_client(lambda r: httpx.Response(200, json=_OK_BODY)))
        context = ActorContext(session)
        context.close()
        await session.sign_in("kai@example.com", "secret1")
        assert context.actor_id is None
