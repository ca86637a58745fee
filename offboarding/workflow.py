"""
Microsoft 365 user offboarding workflow.

Runs a fixed sequence of steps against the directory and mailbox services:

    resolve identity -> disable sign-in -> reset credential
        -> revoke sessions -> convert mailbox

Only a failed identity lookup stops the run. Every later step records its
outcome and hands over to the next, so one blocker never prevents the rest
of the offboarding. Re-running is safe: steps whose target state already
holds report an informational no-op, except the credential reset, which
always applies a fresh password.
"""

from typing import Callable, Optional

from common.logging import get_logger

from .credentials import generate_password
from .errors import M365Error
from .models import (
    DirectoryClient,
    Identity,
    MailboxClient,
    MailboxType,
    OffboardingReport,
    Outcome,
    StepResult,
)

logger = get_logger(__name__)

# Microsoft allows shared mailboxes up to this size without a license
SHARED_MAILBOX_SIZE_LIMIT_GB = 50

STEP_RESOLVE = 'resolve_identity'
STEP_DISABLE = 'disable_sign_in'
STEP_RESET = 'reset_credential'
STEP_REVOKE = 'revoke_sessions'
STEP_MAILBOX = 'convert_mailbox'


class OffboardingWorkflow:
    """Offboards one user at a time through explicit client handles."""

    def __init__(self, directory: DirectoryClient, mailbox: MailboxClient,
                 password_factory: Callable[[], str] = generate_password,
                 reporter: Optional[Callable[[StepResult], None]] = None):
        self.directory = directory
        self.mailbox = mailbox
        self.password_factory = password_factory
        self.reporter = reporter

    def run(self, user_principal_name: str) -> OffboardingReport:
        """Offboard a user and return the per-step report."""
        report = OffboardingReport(user_principal_name=user_principal_name)
        logger.info(f"Starting offboarding for {user_principal_name}")

        identity = self.resolve_identity(report, user_principal_name)
        if identity is None:
            return report

        self.disable_sign_in(report, identity)
        self.reset_credential(report, identity)
        self.revoke_sessions(report, identity)
        self.convert_mailbox(report, user_principal_name)

        logger.info(f"Offboarding finished for {user_principal_name}",
                    outcomes=[outcome.value for outcome in report.outcomes()])
        return report

    def _record(self, report: OffboardingReport, step: str, outcome: Outcome,
                message: str) -> StepResult:
        result = report.add(StepResult(step=step, outcome=outcome, message=message))

        if outcome is Outcome.FATAL:
            logger.error(message, step=step, outcome=outcome.value)
        elif outcome is Outcome.WARNING:
            logger.warning(message, step=step, outcome=outcome.value)
        else:
            logger.info(message, step=step, outcome=outcome.value)

        if self.reporter is not None:
            self.reporter(result)
        return result

    def resolve_identity(self, report: OffboardingReport,
                         user_principal_name: str) -> Optional[Identity]:
        try:
            identity = self.directory.get_user(user_principal_name)
        except M365Error as e:
            if e.is_not_found:
                message = f"User {user_principal_name} not found; nothing was changed"
            else:
                message = f"Could not resolve {user_principal_name}: {e}"
            self._record(report, STEP_RESOLVE, Outcome.FATAL, message)
            return None
        except Exception as e:
            self._record(report, STEP_RESOLVE, Outcome.FATAL,
                         f"Could not resolve {user_principal_name}: {e}")
            return None

        name = identity.display_name or identity.user_principal_name
        self._record(report, STEP_RESOLVE, Outcome.SUCCESS, f"Found user: {name}")
        return identity

    def disable_sign_in(self, report: OffboardingReport, identity: Identity) -> StepResult:
        if not identity.account_enabled:
            return self._record(report, STEP_DISABLE, Outcome.INFO,
                                "Sign-in is already blocked")
        try:
            self.directory.disable_sign_in(identity.id)
        except Exception as e:
            return self._record(report, STEP_DISABLE, Outcome.WARNING,
                                f"Failed to block sign-in: {e}")
        return self._record(report, STEP_DISABLE, Outcome.SUCCESS, "Sign-in blocked")

    def reset_credential(self, report: OffboardingReport, identity: Identity) -> StepResult:
        try:
            self.directory.reset_password(identity.id, self.password_factory(),
                                          force_change=True)
        except Exception as e:
            return self._record(report, STEP_RESET, Outcome.WARNING,
                                f"Failed to reset password: {e}")
        return self._record(report, STEP_RESET, Outcome.SUCCESS,
                            "Password reset to a random value; change required at next sign-in")

    def revoke_sessions(self, report: OffboardingReport, identity: Identity) -> StepResult:
        try:
            self.directory.revoke_sign_in_sessions(identity.id)
        except M365Error as e:
            if e.is_not_found:
                # Expected once sign-in is blocked; revocation is already moot
                return self._record(report, STEP_REVOKE, Outcome.INFO,
                                    "Session revocation returned not found; "
                                    "usually harmless after sign-in is blocked")
            return self._record(report, STEP_REVOKE, Outcome.WARNING,
                                f"Failed to revoke sessions: {e}")
        except Exception as e:
            return self._record(report, STEP_REVOKE, Outcome.WARNING,
                                f"Failed to revoke sessions: {e}")
        return self._record(report, STEP_REVOKE, Outcome.SUCCESS,
                            "Sign-in sessions revoked (may take a few minutes to apply)")

    def convert_mailbox(self, report: OffboardingReport, user_principal_name: str) -> StepResult:
        try:
            mailbox = self.mailbox.get_mailbox(user_principal_name)
        except Exception as e:
            return self._record(report, STEP_MAILBOX, Outcome.WARNING,
                                f"Failed to look up mailbox: {e}")

        if mailbox is None:
            return self._record(report, STEP_MAILBOX, Outcome.INFO,
                                "No mailbox found; skipping conversion")

        if mailbox.is_shared:
            return self._record(report, STEP_MAILBOX, Outcome.INFO,
                                "Mailbox is already shared")

        if mailbox.has_hold:
            holds = ', '.join(mailbox.describe_holds())
            return self._record(report, STEP_MAILBOX, Outcome.WARNING,
                                f"Mailbox has {holds}; remove the hold manually "
                                "before converting to shared")

        try:
            self.mailbox.set_mailbox_type(user_principal_name, MailboxType.SHARED)
        except Exception as e:
            return self._record(report, STEP_MAILBOX, Outcome.WARNING,
                                f"Failed to convert mailbox to shared: {e}")

        return self._record(report, STEP_MAILBOX, Outcome.SUCCESS,
                            "Mailbox converted to shared. The license can be removed if the "
                            f"mailbox is under {SHARED_MAILBOX_SIZE_LIMIT_GB} GB")
