import logging
from typing import Dict, Optional

from google.auth.transport import requests
from google.oauth2 import id_token

from app.config import settings

logger = logging.getLogger(__name__)

_request = requests.Request()


def verify_firebase_token(token: str) -> Optional[Dict[str, str]]:
    """Claims of a valid Firebase ID token, or None."""
    try:
        id_info = id_token.verify_firebase_token(
            token,
            _request,
            audience=settings.firebase_project_id,
        )
    except ValueError as e:
        logger.info(f"Firebase token verification failed: {e}")
        return None

    if not id_info or not id_info.get("sub"):
        return None

    return {
        "uid": id_info["sub"],
        "email": id_info.get("email"),
        "name": id_info.get("name"),
        "picture": id_info.get("picture"),
    }


def get_token_verifier():
    return verify_firebase_token
