"""Normalization of Graph and Exchange payloads into workflow models."""

from typing import Dict, Any, Tuple

from common.logging import get_logger

from .models import Identity, Mailbox, MailboxType

logger = get_logger(__name__)

# RecipientTypeDetails values returned by Get-Mailbox
RECIPIENT_TYPES = {
    'usermailbox': MailboxType.REGULAR,
    'sharedmailbox': MailboxType.SHARED,
}

# Values accepted by Set-Mailbox -Type
TYPE_PARAMETERS = {
    MailboxType.REGULAR: 'Regular',
    MailboxType.SHARED: 'Shared',
}


def map_identity(payload: Dict[str, Any]) -> Identity:
    """Map a Graph user object to an Identity.

    Args:
        payload: Graph user JSON with id, userPrincipalName, displayName, accountEnabled

    Returns:
        Identity
    """
    if not payload.get('id'):
        raise ValueError("Graph user payload has no id")

    return Identity(
        id=payload['id'],
        user_principal_name=payload.get('userPrincipalName', ''),
        display_name=payload.get('displayName'),
        # Missing or null counts as enabled so the disable step still runs
        account_enabled=payload.get('accountEnabled') is not False,
    )


def map_recipient_type(value: Any) -> MailboxType:
    if not value:
        return MailboxType.OTHER
    return RECIPIENT_TYPES.get(str(value).strip().lower(), MailboxType.OTHER)


def _normalize_holds(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(hold) for hold in value if hold)


def map_mailbox(payload: Dict[str, Any]) -> Mailbox:
    """Map a Get-Mailbox result object to a Mailbox.

    Args:
        payload: Exchange admin API cmdlet output for a single mailbox

    Returns:
        Mailbox
    """
    raw_type = payload.get('RecipientTypeDetails')
    recipient_type = map_recipient_type(raw_type)
    if recipient_type is MailboxType.OTHER:
        logger.debug(f"Unrecognized recipient type: {raw_type}")

    upn = payload.get('UserPrincipalName') or payload.get('PrimarySmtpAddress') or ''

    return Mailbox(
        identity=payload.get('ExternalDirectoryObjectId') or payload.get('Identity') or upn,
        user_principal_name=upn,
        display_name=payload.get('DisplayName'),
        recipient_type=recipient_type,
        raw_recipient_type=raw_type,
        litigation_hold_enabled=bool(payload.get('LitigationHoldEnabled', False)),
        in_place_holds=_normalize_holds(payload.get('InPlaceHolds')),
    )


def recipient_type_parameter(mailbox_type: MailboxType) -> str:
    """Return the Set-Mailbox -Type value for a MailboxType."""
    try:
        return TYPE_PARAMETERS[mailbox_type]
    except KeyError:
        raise ValueError(f"Mailbox type cannot be set to: {mailbox_type.value}")
