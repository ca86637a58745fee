"""Exchange Online admin API client.

Runs Exchange cmdlets over the REST endpoint that backs the
ExchangeOnlineManagement module (``/adminapi/beta/{tenant}/InvokeCommand``).
"""

from typing import Any, Dict, List, Optional

import requests

from common.logging import get_logger

from .auth import EXCHANGE_SCOPE
from .errors import ExchangeAPIError, ErrorKind
from .mapping import map_mailbox, recipient_type_parameter
from .models import Mailbox, MailboxType

logger = get_logger(__name__)


class ExchangeAPI:
    """Client for the Exchange Online mailbox cmdlets used during offboarding."""

    COMMAND_PATH = "/adminapi/beta/{tenant_id}/InvokeCommand"

    def __init__(self, token_provider, tenant_id: str,
                 base_url: str = "https://outlook.office365.com",
                 timeout: int = 30, session: Optional[requests.Session] = None):
        self.token_provider = token_provider
        self.tenant_id = tenant_id
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

    @property
    def command_url(self) -> str:
        return self.base_url + self.COMMAND_PATH.format(tenant_id=self.tenant_id)

    def invoke_command(self, cmdlet: str, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run a single cmdlet and return its output objects.

        Args:
            cmdlet: Cmdlet name, e.g. 'Get-Mailbox'
            parameters: Cmdlet parameters

        Returns:
            List of output objects (empty for cmdlets with no output)
        """
        token = self.token_provider.get_token(EXCHANGE_SCOPE)
        headers = {
            'Authorization': f'Bearer {token}',
            'X-AnchorMailbox': f'UPN:{parameters.get("Identity", "")}',
        }
        body = {'CmdletInput': {'CmdletName': cmdlet, 'Parameters': parameters}}

        logger.debug(f"Exchange {cmdlet} {parameters.get('Identity', '')}")

        try:
            response = self.session.post(self.command_url, headers=headers, json=body,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Exchange API request error for {cmdlet}: {e}")
            raise ExchangeAPIError.from_exception(e)

        if not response.ok:
            error = ExchangeAPIError.from_response(response)
            # Lookups of absent objects are an expected answer, not a failure
            if error.kind is ErrorKind.NOT_FOUND:
                logger.debug(f"Exchange {cmdlet} target not found: {error}")
            else:
                logger.error(f"Exchange API error for {cmdlet}: {error}")
            raise error

        if response.status_code == 204 or not response.content:
            return []

        data = response.json()
        value = data.get('value', []) if isinstance(data, dict) else data
        return value or []

    def get_mailbox(self, user_principal_name: str) -> Optional[Mailbox]:
        """Look up a mailbox, returning None when the user has none."""
        try:
            results = self.invoke_command('Get-Mailbox', {'Identity': user_principal_name})
        except ExchangeAPIError as e:
            if e.is_not_found:
                return None
            raise

        if not results:
            return None
        return map_mailbox(results[0])

    def set_mailbox_type(self, user_principal_name: str, mailbox_type: MailboxType) -> None:
        self.invoke_command('Set-Mailbox', {
            'Identity': user_principal_name,
            'Type': recipient_type_parameter(mailbox_type),
        })
        logger.debug(f"Set mailbox type for {user_principal_name} to {mailbox_type.value}")
