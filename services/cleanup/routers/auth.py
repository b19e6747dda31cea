"""
Email/password auth, proxied to Firebase Auth.

Endpoints:
  POST /auth/sign-in    -- returns the user id + tokens; the client sends the id as X-User-Id afterwards
  POST /auth/register   -- creates the account; does NOT sign the caller in

Credentials are pre-checked before any upstream call (email contains "@",
password at least 6 characters) and reported per field.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from services.cleanup.auth.firebase import FirebaseAuthClient
from services.cleanup.routers._envelope import ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class CredentialsRequest(BaseModel):
    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=4096)


def _client(request: Request) -> FirebaseAuthClient:
    return request.app.state.auth_client


@router.post("/sign-in")
async def sign_in(body: CredentialsRequest, request: Request):
    user = await _client(request).sign_in(body.email.strip(), body.password)
    return ok(request, user.to_dict())


@router.post("/register", status_code=201)
async def register(body: CredentialsRequest, request: Request):
    user = await _client(request).sign_up(body.email.strip(), body.password)
    return ok(
        request,
        {
            "userId": user.uid,
            "email": user.email,
            "message": "Account created. You can now sign in.",
        },
    )
