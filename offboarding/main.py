#!/usr/bin/env python3
"""Microsoft 365 user offboarding CLI."""

import argparse
import sys
from typing import Callable, Optional

from tabulate import tabulate

from common.config import config
from common.logging import setup_logging, get_logger

from .auth import TokenProvider
from .exchange import ExchangeAPI
from .graph import GraphAPI
from .models import OffboardingReport
from .prompt import is_principal_name, read_until
from .workflow import OffboardingWorkflow

PROMPT = "Enter the email address (UPN) of the user to offboard: "


def prompt_principal_name(source: Callable[[], str] = lambda: input(PROMPT)) -> str:
    """Ask for the principal name until an email-shaped value is entered."""
    def reject(value):
        print(f"'{value}' is not a valid email address. Please try again.")

    return read_until(is_principal_name, source, on_invalid=reject)


def format_report_table(report: OffboardingReport) -> str:
    """
    Format a workflow report as a table for display.

    Args:
        report: Completed offboarding report

    Returns:
        Formatted table string
    """
    table_data = [
        [result.step, result.outcome.value.upper(), result.message]
        for result in report.results
    ]
    headers = ['step', 'outcome', 'message']
    return tabulate(table_data, headers=headers, tablefmt='grid')


def build_workflow(token_provider: TokenProvider) -> OffboardingWorkflow:
    m365 = config.m365
    directory = GraphAPI(token_provider, base_url=m365.graph_url, timeout=m365.timeout)
    mailbox = ExchangeAPI(token_provider, tenant_id=m365.tenant_id,
                          base_url=m365.exchange_url, timeout=m365.timeout)
    return OffboardingWorkflow(directory, mailbox)


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Offboard a Microsoft 365 user: block sign-in, reset password, '
                    'revoke sessions and convert the mailbox to shared',
    )
    parser.add_argument(
        '--user',
        help='User principal name to offboard (prompted for when missing or invalid)'
    )
    args = parser.parse_args(argv)

    setup_logging()
    logger = get_logger(__name__)

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        if args.user and is_principal_name(args.user):
            upn = args.user.strip()
        else:
            if args.user:
                print(f"'{args.user}' is not a valid email address.")
            upn = prompt_principal_name()
    except (EOFError, KeyboardInterrupt):
        print()
        logger.error("No user entered; aborting")
        return 1

    token_provider = TokenProvider(config.m365)
    try:
        token_provider.sign_in()
    except Exception as e:
        logger.error(f"Microsoft 365 sign-in failed: {e}")
        return 1

    workflow = build_workflow(token_provider)
    report = workflow.run(upn)

    print(f"\n=== OFFBOARDING SUMMARY: {upn} ===")
    print(format_report_table(report))

    if report.aborted:
        logger.error("Offboarding aborted")
    elif report.has_warnings:
        logger.warning("Offboarding finished with warnings; re-run after fixing them")
    else:
        logger.info("Offboarding completed")

    return report.exit_code()


if __name__ == '__main__':
    sys.exit(main())
