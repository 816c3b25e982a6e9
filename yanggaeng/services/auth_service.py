"""Bearer token verification backed by the Firebase Admin SDK.

With ``FIREBASE_CREDENTIALS`` set, ID tokens issued to the mobile web client
are verified against Firebase.  Otherwise the service runs in **mock auth
mode** for local development and tests: any non-empty token is accepted and
its value is used as the user ID.
"""

import logging

from firebase_admin import auth as firebase_auth

from yanggaeng.db.firestore import get_firebase_app, is_mock_mode

logger = logging.getLogger(__name__)


def verify_token(token: str) -> dict | None:
    """Verify a Bearer token and return decoded claims.

    Returns a dict with ``uid``, ``email`` and ``name`` keys, or *None*
    when the token is invalid or expired.
    """
    if is_mock_mode():
        return _verify_mock_token(token)

    try:
        decoded = firebase_auth.verify_id_token(token, app=get_firebase_app())
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.CertificateFetchError) as e:
        logger.warning("Firebase token verification failed: %s", e)
        return None
    return {
        "uid": decoded["uid"],
        "email": decoded.get("email", ""),
        "name": decoded.get("name", ""),
    }


def _verify_mock_token(token: str) -> dict | None:
    """Accept any non-empty token in mock mode. The value *is* the uid."""
    if not token:
        return None
    return {"uid": token, "email": f"{token}@mock.local", "name": ""}
