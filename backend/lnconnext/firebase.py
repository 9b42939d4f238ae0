"""Firebase Admin SDK wiring.

The admin app is initialized lazily from environment credentials, either
a base64-encoded service account JSON in `FIREBASE_SERVICE_ACCOUNT_KEY`
or the three `FIREBASE_ADMIN_*` variables. Without credentials the app
stays uninitialized, a warning is logged and every token is rejected.
"""

import base64
import binascii
import json
import logging
import os
from functools import lru_cache
from typing import Mapping, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError

logger = logging.getLogger("lnconnext.firebase")


def load_service_account(env: Mapping[str, str] = None) -> Optional[dict]:
    """Return service account info from `env`, or None if not configured.

    Raises ValueError when `FIREBASE_SERVICE_ACCOUNT_KEY` is set but is
    not base64-encoded JSON.
    """
    env = os.environ if env is None else env
    encoded = env.get("FIREBASE_SERVICE_ACCOUNT_KEY")
    if encoded:
        try:
            return json.loads(base64.b64decode(encoded).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_KEY is not base64-encoded JSON") from exc

    project_id = env.get("FIREBASE_ADMIN_PROJECT_ID")
    private_key = env.get("FIREBASE_ADMIN_PRIVATE_KEY")
    client_email = env.get("FIREBASE_ADMIN_CLIENT_EMAIL")
    if project_id and private_key and client_email:
        return {
            "type": "service_account",
            "project_id": project_id,
            # keys pasted into env files carry literal "\n" sequences
            "private_key": private_key.replace("\\n", "\n"),
            "client_email": client_email,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    return None


@lru_cache(maxsize=1)
def get_firebase_app() -> Optional[firebase_admin.App]:
    """Return the initialized admin app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    try:
        info = load_service_account()
    except ValueError:
        logger.exception("Failed to read Firebase Admin credentials")
        return None
    if info is None:
        logger.warning(
            "Firebase Admin credentials not found in environment variables. "
            "Authentication will not work. Set FIREBASE_SERVICE_ACCOUNT_KEY or "
            "FIREBASE_ADMIN_PROJECT_ID, FIREBASE_ADMIN_PRIVATE_KEY and FIREBASE_ADMIN_CLIENT_EMAIL."
        )
        return None
    try:
        app = firebase_admin.initialize_app(credentials.Certificate(info))
    except (ValueError, FirebaseError):
        logger.exception("Failed to initialize Firebase Admin")
        return None
    logger.info("Firebase Admin initialized for project %s", info.get("project_id"))
    return app


def verify_id_token(token: str) -> Optional[dict]:
    """Verify a Firebase ID token.

    Returns `{uid, email, email_verified}` for a valid token and None
    for anything else (bad signature, expired, revoked, SDK unavailable).
    """
    app = get_firebase_app()
    if app is None:
        logger.error("Firebase Admin SDK not initialized. Cannot verify token.")
        return None
    try:
        decoded = firebase_auth.verify_id_token(token, app=app)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.CertificateFetchError,
            firebase_auth.UserDisabledError) as exc:
        logger.info("Token verification failed: %s", exc)
        return None
    return {
        "uid": decoded["uid"],
        "email": decoded.get("email") or "",
        "email_verified": bool(decoded.get("email_verified", False)),
    }


def get_user_by_uid(uid: str):
    """Fetch the Firebase `UserRecord` for `uid`, or None if unavailable."""
    app = get_firebase_app()
    if app is None:
        logger.error("Firebase Admin SDK not initialized")
        return None
    try:
        return firebase_auth.get_user(uid, app=app)
    except firebase_auth.UserNotFoundError:
        return None
    except (ValueError, FirebaseError):
        logger.exception("Failed to get user by UID %s", uid)
        return None
