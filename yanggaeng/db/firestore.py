"""Firebase Admin SDK and Firestore client initialisation.

Initialised lazily on first use.  Without ``FIREBASE_CREDENTIALS`` the service
runs in **mock mode**: token checks are relaxed and every store falls back to
its in-memory implementation.

``FIREBASE_CREDENTIALS`` is either a path to a service-account JSON file or
the JSON document itself (handy for container secrets).
"""

import functools
import json
import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from yanggaeng.config import settings
from yanggaeng.db.errors import ConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

_firebase_app: firebase_admin.App | None = None
_firestore_client = None  # google.cloud.firestore_v1.client.Client | None
_mock_mode: bool = False
_initialized: bool = False


def _load_credentials(value: str) -> credentials.Certificate:
    """Build a Certificate from a file path or inline JSON string."""
    stripped = value.strip()
    if stripped.startswith("{"):
        return credentials.Certificate(json.loads(stripped))
    return credentials.Certificate(stripped)


def _ensure_initialized() -> None:
    global _firebase_app, _firestore_client, _mock_mode, _initialized
    if _initialized:
        return
    _initialized = True

    if not settings.FIREBASE_CREDENTIALS:
        _mock_mode = True
        logger.warning(
            "FIREBASE_CREDENTIALS not set, running in mock mode with in-memory stores"
        )
        return

    try:
        cred = _load_credentials(settings.FIREBASE_CREDENTIALS)
        _firebase_app = firebase_admin.initialize_app(cred)
        _firestore_client = firestore.client(app=_firebase_app)
        logger.info("Firebase Admin SDK + Firestore initialised")
    except (ValueError, OSError) as e:
        _mock_mode = True
        logger.warning("Failed to initialise Firebase (%s), falling back to mock mode", e)


def is_mock_mode() -> bool:
    """Return *True* when running without real Firebase credentials."""
    _ensure_initialized()
    return _mock_mode


def get_firebase_app() -> firebase_admin.App | None:
    """Return the initialised Firebase app (or *None* in mock mode)."""
    _ensure_initialized()
    return _firebase_app


def get_firestore_client():
    """Return the Firestore client (or *None* in mock mode)."""
    _ensure_initialized()
    return _firestore_client


def translate_errors(func):
    """Map google-api-core failures onto the store error taxonomy."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except google_exceptions.AlreadyExists as e:
            raise ConflictError("already_exists") from e
        except google_exceptions.GoogleAPICallError as e:
            logger.error("Firestore call %s failed: %s", func.__name__, e)
            raise StoreUnavailableError(str(e)) from e

    return wrapper


def run_transaction(func):
    """Run a ``@transactional`` callable in a fresh transaction.

    Firestore gives up on a contended transaction with a bare ``ValueError``
    once its commit retries are spent; that is reported as an outage.
    """
    try:
        return func(get_firestore_client().transaction())
    except ValueError as e:
        logger.error("Firestore transaction failed: %s", e)
        raise StoreUnavailableError(str(e)) from e
