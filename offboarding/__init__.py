"""
Microsoft 365 user offboarding
"""

from .models import Identity, Mailbox, MailboxType, Outcome, StepResult, OffboardingReport
from .workflow import OffboardingWorkflow

__all__ = [
    'Identity',
    'Mailbox',
    'MailboxType',
    'Outcome',
    'StepResult',
    'OffboardingReport',
    'OffboardingWorkflow',
]
