"""OAuth2 client-credentials exchange against the editor backend."""
import logging
from typing import Optional

import httpx

from dictionary_fill.app_config import EditorConfig

logger = logging.getLogger(__name__)

TOKEN_PATH = '/oauth2/token'


class OAuthError(Exception):
    """OAuth token exchange error."""
    pass


async def get_oauth2_access_token(editor: EditorConfig, timeout: float = 30.0,
                                  transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[str]:
    """
    Exchange the configured client credentials for a bearer token.

    Args:
        editor: Editor backend settings holding ``client_id`` and ``client_secret``.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport.

    Returns:
        The access token, or None when no credentials are configured.

    Raises:
        OAuthError: When the backend refuses the exchange or answers without a token.
    """
    if not editor.has_credentials:
        return None

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.post(
                f"{editor.backend_url}{TOKEN_PATH}",
                data={
                    "grant_type": "client_credentials",
                    "client_id": editor.client_id,
                    "client_secret": editor.client_secret,
                },
            )
        except httpx.HTTPError as e:
            raise OAuthError(f"Token exchange failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"OAuth2 token exchange failed: {response.text}")
        raise OAuthError(f"Token exchange failed: {response.status_code}")

    payload = response.json()
    data = payload.get('data') or {}
    access_token = data.get('accessToken') or payload.get('access_token')
    if not access_token:
        raise OAuthError("Token exchange succeeded but no access token was returned")

    logger.debug("Obtained OAuth2 access token for the editor backend")
    return access_token
