import logging

import requests
from firebase_admin import auth as firebase_auth

from app.core.config import Settings
from app.core.errors import AuthenticationError, BadRequest, backend_error
from app.db.firestore import initialize_app
from app.models.user import AuthSession

logger = logging.getLogger("darbar.session")

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Identity Toolkit error codes -> message shown next to the login form
AUTH_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password",
    "INVALID_PASSWORD": "Invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later",
    "ADMIN_ONLY_OPERATION": "Guest sign-in is not available",
    "OPERATION_NOT_ALLOWED": "Guest sign-in is not available",
    "INVALID_REFRESH_TOKEN": "Your session has expired. Please sign in again",
    "TOKEN_EXPIRED": "Your session has expired. Please sign in again",
    "USER_NOT_FOUND": "Your session has expired. Please sign in again",
}


def _auth_error(response) -> AuthenticationError:
    try:
        code = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        code = ""
    # Codes can carry a suffix, e.g. "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
    code = code.split(" ")[0]
    logger.warning(f"Sign-in rejected: {code or response.status_code}")
    return AuthenticationError(AUTH_MESSAGES.get(code, "Sign in failed"))


class AuthSessionService:
    """
    Email/password and guest sign-in, session restore and sign-out against
    Firebase Authentication.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _post(self, url: str, **kwargs):
        if not self.settings.firebase_api_key:
            raise backend_error(RuntimeError("FIREBASE_API_KEY is not configured"), "Sign-in")
        try:
            response = requests.post(url, params={"key": self.settings.firebase_api_key}, timeout=10, **kwargs)
        except requests.RequestException as e:
            raise backend_error(e, "Contacting Firebase Auth")
        if response.status_code >= 500:
            raise backend_error(RuntimeError(response.text), "Firebase Auth")
        if response.status_code >= 400:
            raise _auth_error(response)
        return response.json()

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = self._post(
            f"{IDENTITY_URL}:signInWithPassword",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        logger.info(f"Signed in {data['localId']}")
        return AuthSession(
            uid=data["localId"],
            email=(data.get("email") or email).lower(),
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_in=int(data.get("expiresIn", 3600)),
        )

    def sign_in_anonymously(self) -> AuthSession:
        data = self._post(f"{IDENTITY_URL}:signUp", json={"returnSecureToken": True})
        logger.info(f"Guest session started {data['localId']}")
        return AuthSession(
            uid=data["localId"],
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_in=int(data.get("expiresIn", 3600)),
            is_anonymous=True,
        )

    def restore(self, refresh_token: str) -> AuthSession:
        """Exchanges a persisted refresh token for a fresh ID token."""
        data = self._post(
            SECURE_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        claims = verify_token(data["id_token"])
        return AuthSession(
            uid=data["user_id"],
            email=claims.get("email"),
            id_token=data["id_token"],
            refresh_token=data["refresh_token"],
            expires_in=int(data.get("expires_in", 3600)),
            is_anonymous=claims.get("firebase", {}).get("sign_in_provider") == "anonymous",
        )

    def sign_out(self, uid: str):
        """Revokes every refresh token of the user so persisted sessions stop restoring."""
        initialize_app()
        try:
            firebase_auth.revoke_refresh_tokens(uid)
        except Exception as e:
            raise backend_error(e, f"Signing out {uid}")
        logger.info(f"Signed out {uid}")

    def create_account(self, email: str, password: str) -> str:
        initialize_app()
        try:
            record = firebase_auth.create_user(email=email, password=password, email_verified=False)
        except firebase_auth.EmailAlreadyExistsError:
            raise BadRequest("User already registered. Please log in.")
        except ValueError as e:
            raise BadRequest(str(e))
        except Exception as e:
            raise backend_error(e, "Creating account")
        logger.info(f"Created account {record.uid}")
        return record.uid


def verify_token(token: str) -> dict:
    """Verifies a Firebase ID token and returns its claims with the email lowercased."""
    initialize_app()
    try:
        claims = firebase_auth.verify_id_token(token)
    except Exception as e:
        logger.error(f"Auth failed: {e}")
        raise AuthenticationError()
    if claims.get("email"):
        claims["email"] = claims["email"].lower()
    return claims
