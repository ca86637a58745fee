"""
Microsoft 365 token acquisition with MSAL.

App-only (client credentials) when a client secret is configured, otherwise
a delegated interactive sign-in as the operator. The interactive prompt is
shown once; tokens for further resources are acquired silently for the
same account.
"""

from typing import Dict, Optional

from msal import ConfidentialClientApplication, PublicClientApplication

from common.config import M365Config
from common.logging import get_logger

from .errors import AuthenticationError

logger = get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
EXCHANGE_SCOPE = "https://outlook.office365.com/.default"


class TokenProvider:
    """Acquires access tokens for Graph and Exchange Online."""

    def __init__(self, m365_config: M365Config, msal_app=None):
        self.config = m365_config
        self._app = msal_app
        self._account: Optional[Dict] = None

    @property
    def app(self):
        if self._app is None:
            self._app = self._build_app()
        return self._app

    def _build_app(self):
        if self.config.app_only:
            logger.debug("Using app-only authentication")
            return ConfidentialClientApplication(
                self.config.client_id,
                authority=self.config.authority,
                client_credential=self.config.client_secret,
            )

        logger.debug("Using delegated interactive authentication")
        return PublicClientApplication(
            self.config.client_id,
            authority=self.config.authority,
        )

    def get_token(self, scope: str) -> str:
        """Return an access token for a single resource scope.

        Args:
            scope: Resource scope, e.g. GRAPH_SCOPE

        Returns:
            Access token string

        Raises:
            AuthenticationError: when MSAL reports an error
        """
        scopes = [scope]

        if self.config.app_only:
            result = self.app.acquire_token_for_client(scopes=scopes)
        else:
            result = self._acquire_delegated(scopes)

        if not result or 'access_token' not in result:
            result = result or {}
            error = result.get('error', 'no_token')
            description = result.get('error_description', 'No access token returned')
            logger.error(f"Token acquisition failed for {scope}: {error}")
            raise AuthenticationError(f"{error}: {description}", code=error)

        return result['access_token']

    def _acquire_delegated(self, scopes):
        account = self._account
        if account is None:
            accounts = self.app.get_accounts()
            account = accounts[0] if accounts else None

        if account is not None:
            result = self.app.acquire_token_silent(scopes, account=account)
            if result and 'access_token' in result:
                return result

        logger.info("Opening browser for Microsoft 365 sign-in")
        result = self.app.acquire_token_interactive(scopes=scopes, prompt='select_account')

        if result and 'access_token' in result:
            accounts = self.app.get_accounts()
            if accounts:
                self._account = accounts[0]
        return result

    def sign_in(self) -> None:
        """Establish the session up front so the workflow never prompts mid-run."""
        self.get_token(GRAPH_SCOPE)
        self.get_token(EXCHANGE_SCOPE)
        logger.info("Signed in to Microsoft Graph and Exchange Online")
