"""Data model for the offboarding workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Tuple


@dataclass(frozen=True)
class Identity:
    """Directory user as seen by the workflow."""
    id: str
    user_principal_name: str
    display_name: Optional[str]
    account_enabled: bool


class MailboxType(Enum):
    REGULAR = "regular"
    SHARED = "shared"
    OTHER = "other"


@dataclass(frozen=True)
class Mailbox:
    """Exchange Online mailbox with the hold state relevant to conversion."""
    identity: str
    user_principal_name: str
    display_name: Optional[str]
    recipient_type: MailboxType
    raw_recipient_type: Optional[str] = None
    litigation_hold_enabled: bool = False
    in_place_holds: Tuple[str, ...] = ()

    @property
    def is_shared(self) -> bool:
        return self.recipient_type is MailboxType.SHARED

    @property
    def has_hold(self) -> bool:
        return self.litigation_hold_enabled or bool(self.in_place_holds)

    def describe_holds(self) -> List[str]:
        holds = []
        if self.litigation_hold_enabled:
            holds.append('litigation hold')
        if self.in_place_holds:
            holds.append(f"{len(self.in_place_holds)} in-place hold(s)")
        return holds


class Outcome(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass
class StepResult:
    step: str
    outcome: Outcome
    message: str


@dataclass
class OffboardingReport:
    """Ordered record of every step outcome for one principal."""
    user_principal_name: str
    results: List[StepResult] = field(default_factory=list)

    def add(self, result: StepResult) -> StepResult:
        self.results.append(result)
        return result

    def outcomes(self) -> List[Outcome]:
        return [result.outcome for result in self.results]

    @property
    def aborted(self) -> bool:
        return Outcome.FATAL in self.outcomes()

    @property
    def has_warnings(self) -> bool:
        return Outcome.WARNING in self.outcomes()

    def exit_code(self) -> int:
        """1 when the run aborted, 2 when any step needs follow-up, else 0."""
        if self.aborted:
            return 1
        if self.has_warnings:
            return 2
        return 0


class DirectoryClient(Protocol):
    """Identity operations the workflow needs from the directory service."""

    def get_user(self, user_principal_name: str) -> Identity: ...

    def disable_sign_in(self, user_id: str) -> None: ...

    def reset_password(self, user_id: str, password: str, force_change: bool = True) -> None: ...

    def revoke_sign_in_sessions(self, user_id: str) -> None: ...


class MailboxClient(Protocol):
    """Mailbox operations the workflow needs from the mail service."""

    def get_mailbox(self, user_principal_name: str) -> Optional[Mailbox]: ...

    def set_mailbox_type(self, user_principal_name: str, mailbox_type: MailboxType) -> None: ...
