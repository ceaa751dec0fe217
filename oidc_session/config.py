"""
Session configuration from the environment. Defaults match a local development identity provider.
Client identifiers and URLs are public; a client secret, if any, comes from the environment only.
"""
import os

from oidc_session.backend import OidcConfiguration

# Identity provider (issuer)
ISSUER = os.environ.get("OIDC_ISSUER", "http://127.0.0.1:9000").rstrip("/")

CLIENT_ID = os.environ.get("OIDC_CLIENT_ID", "test-client")

# Confidential clients only; public (PKCE) clients leave it unset
CLIENT_SECRET = os.environ.get("OIDC_CLIENT_SECRET", "").strip() or None

REDIRECT_URL = os.environ.get("OIDC_REDIRECT_URL", "http://127.0.0.1:8000/callback")

# Falls back to REDIRECT_URL at logout when unset
POST_LOGOUT_REDIRECT_URL = os.environ.get("OIDC_POST_LOGOUT_REDIRECT_URL", "").strip() or None

SCOPES = os.environ.get("OIDC_SCOPES", "openid profile email").split()

REGISTRATION_PAGE_ENDPOINT = os.environ.get("OIDC_REGISTRATION_PAGE_ENDPOINT", "").strip() or None

# When unset, {issuer}/protocol/openid-connect/userinfo is used
USERINFO_ENDPOINT = os.environ.get("OIDC_USERINFO_ENDPOINT", "").strip() or None

# Where SqlAlchemyStore keeps the persisted token triple
DATABASE_URL = os.environ.get("OIDC_SESSION_DATABASE_URL", "sqlite:///./oidc_session.db")

# Seconds of remaining validity below which update_token() refreshes
MIN_VALIDITY_SECONDS = int(os.environ.get("OIDC_MIN_VALIDITY", "5"))


def configuration_from_env() -> OidcConfiguration:
    return OidcConfiguration(
        issuer=ISSUER,
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        redirect_url=REDIRECT_URL,
        post_logout_redirect_url=POST_LOGOUT_REDIRECT_URL,
        scopes=list(SCOPES),
        registration_page_endpoint=REGISTRATION_PAGE_ENDPOINT,
        userinfo_endpoint=USERINFO_ENDPOINT,
    )
