# auth package: Firebase Auth REST client, session state, actor context
from services.cleanup.auth.firebase import (
    ActorContext,
    AuthFailure,
    AuthSession,
    AuthUser,
    FirebaseAuthClient,
)

__all__ = [
    "ActorContext",
    "AuthFailure",
    "AuthSession",
    "AuthUser",
    "FirebaseAuthClient",
]
