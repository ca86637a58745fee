"""Microsoft Graph directory client."""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from common.logging import get_logger

from .auth import GRAPH_SCOPE
from .errors import ErrorKind, GraphAPIError
from .mapping import map_identity
from .models import Identity

logger = get_logger(__name__)

USER_SELECT = 'id,displayName,userPrincipalName,accountEnabled'


class GraphAPI:
    """Client for the Microsoft Graph user endpoints used during offboarding."""

    def __init__(self, token_provider, base_url: str = "https://graph.microsoft.com/v1.0",
                 timeout: int = 30, session: Optional[requests.Session] = None):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    def _request(self, method: str, endpoint: str,
                 params: Optional[Dict[str, str]] = None,
                 json: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Make an authenticated request to Graph.

        Args:
            method: HTTP method
            endpoint: API endpoint (e.g., '/users/{id}')
            params: Optional query parameters
            json: Optional JSON body

        Returns:
            JSON response as dict, or None for empty (204) responses
        """
        token = self.token_provider.get_token(GRAPH_SCOPE)
        url = f"{self.base_url}{endpoint}"
        headers = {'Authorization': f'Bearer {token}'}

        logger.debug(f"Graph {method} {endpoint}")

        try:
            response = self.session.request(method, url, headers=headers, params=params,
                                            json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Graph API request error for {method} {endpoint}: {e}")
            raise GraphAPIError.from_exception(e)

        if not response.ok:
            error = GraphAPIError.from_response(response)
            # Absent objects are an expected answer; the caller decides how to report them
            if error.kind is ErrorKind.NOT_FOUND:
                logger.debug(f"Graph {method} {endpoint} target not found: {error}")
            else:
                logger.error(f"Graph API error for {method} {endpoint}: {error}")
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get_user(self, user_principal_name: str) -> Identity:
        """Resolve a user by principal name.

        Raises:
            GraphAPIError: NOT_FOUND when no such user exists
        """
        endpoint = f"/users/{quote(user_principal_name, safe='@')}"
        payload = self._request('GET', endpoint, params={'$select': USER_SELECT})
        if not payload:
            raise GraphAPIError(f"Empty user response for {user_principal_name}")
        return map_identity(payload)

    def update_user(self, user_id: str, payload: Dict[str, Any]) -> None:
        self._request('PATCH', f"/users/{user_id}", json=payload)

    def disable_sign_in(self, user_id: str) -> None:
        self.update_user(user_id, {'accountEnabled': False})

    def reset_password(self, user_id: str, password: str, force_change: bool = True) -> None:
        # Body is not logged; _request only logs method and endpoint
        self.update_user(user_id, {
            'passwordProfile': {
                'password': password,
                'forceChangePasswordNextSignIn': bool(force_change),
            }
        })

    def revoke_sign_in_sessions(self, user_id: str) -> None:
        """Invalidate refresh tokens and session cookies. Propagation is asynchronous."""
        self._request('POST', f"/users/{user_id}/revokeSignInSessions")
