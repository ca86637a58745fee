"""
Tests for the offboarding workflow runner
"""
import json
import logging
import pytest
import requests
import structlog
from unittest.mock import Mock, call

from common.logging import setup_logging
from offboarding import graph as graph_module
from offboarding import workflow as workflow_module
from offboarding.graph import GraphAPI
from offboarding.errors import ErrorKind, ExchangeAPIError, GraphAPIError
from offboarding.models import Identity, Mailbox, MailboxType, Outcome
from offboarding.workflow import (
    OffboardingWorkflow,
    STEP_DISABLE,
    STEP_MAILBOX,
    STEP_RESET,
    STEP_RESOLVE,
    STEP_REVOKE,
)

UPN = 'user@example.com'
SECRET = 'Zx9!generated-secret-value'


def make_identity(enabled=True):
    return Identity(
        id='11111111-2222-3333-4444-555555555555',
        user_principal_name=UPN,
        display_name='Example User',
        account_enabled=enabled,
    )


def make_mailbox(recipient_type=MailboxType.REGULAR, litigation_hold=False, in_place_holds=()):
    return Mailbox(
        identity='11111111-2222-3333-4444-555555555555',
        user_principal_name=UPN,
        display_name='Example User',
        recipient_type=recipient_type,
        raw_recipient_type='UserMailbox',
        litigation_hold_enabled=litigation_hold,
        in_place_holds=tuple(in_place_holds),
    )


@pytest.fixture
def clients():
    """Directory and mailbox mocks sharing one parent so call order is recorded"""
    parent = Mock()
    parent.directory.get_user.return_value = make_identity()
    parent.mailbox.get_mailbox.return_value = make_mailbox()
    return parent


@pytest.fixture
def workflow(clients):
    return OffboardingWorkflow(clients.directory, clients.mailbox,
                               password_factory=lambda: SECRET)


def step_result(report, step):
    matches = [result for result in report.results if result.step == step]
    assert len(matches) == 1
    return matches[0]


class TestEndToEnd:
    """Test complete workflow runs"""

    def test_happy_path_call_order(self, clients, workflow):
        """Test all steps run in order against a regular, hold-free mailbox"""
        report = workflow.run(UPN)

        identity = make_identity()
        assert clients.mock_calls == [
            call.directory.get_user(UPN),
            call.directory.disable_sign_in(identity.id),
            call.directory.reset_password(identity.id, SECRET, force_change=True),
            call.directory.revoke_sign_in_sessions(identity.id),
            call.mailbox.get_mailbox(UPN),
            call.mailbox.set_mailbox_type(UPN, MailboxType.SHARED),
        ]
        assert report.outcomes() == [Outcome.SUCCESS] * 5
        assert [result.step for result in report.results] == [
            STEP_RESOLVE, STEP_DISABLE, STEP_RESET, STEP_REVOKE, STEP_MAILBOX,
        ]
        assert report.exit_code() == 0

    def test_identity_not_found_aborts(self, clients, workflow):
        """Test a failed lookup yields one fatal entry and no further calls"""
        clients.directory.get_user.side_effect = GraphAPIError(
            "Resource 'user@example.com' does not exist",
            kind=ErrorKind.NOT_FOUND, status_code=404, code='Request_ResourceNotFound',
        )

        report = workflow.run(UPN)

        assert clients.mock_calls == [call.directory.get_user(UPN)]
        assert report.outcomes() == [Outcome.FATAL]
        assert report.aborted is True
        assert report.exit_code() == 1
        assert 'not found' in report.results[0].message

    def test_identity_lookup_error_aborts(self, clients, workflow):
        """Test any resolution failure is terminal"""
        clients.directory.get_user.side_effect = GraphAPIError(
            "Insufficient privileges", kind=ErrorKind.FORBIDDEN, status_code=403,
        )

        report = workflow.run(UPN)

        assert report.outcomes() == [Outcome.FATAL]
        clients.directory.disable_sign_in.assert_not_called()
        clients.mailbox.get_mailbox.assert_not_called()

    def test_reporter_receives_each_result(self, clients):
        """Test the reporter callback sees every step result"""
        reporter = Mock()
        workflow = OffboardingWorkflow(clients.directory, clients.mailbox,
                                       password_factory=lambda: SECRET, reporter=reporter)

        report = workflow.run(UPN)

        assert reporter.call_count == 5
        assert [c.args[0] for c in reporter.call_args_list] == report.results

    def test_failures_do_not_stop_later_steps(self, clients, workflow):
        """Test each later step runs even when every earlier one failed"""
        clients.directory.disable_sign_in.side_effect = GraphAPIError("boom", status_code=500)
        clients.directory.reset_password.side_effect = GraphAPIError("boom", status_code=500)
        clients.directory.revoke_sign_in_sessions.side_effect = RuntimeError("boom")
        clients.mailbox.get_mailbox.side_effect = ExchangeAPIError("boom", status_code=500)

        report = workflow.run(UPN)

        assert report.outcomes() == [
            Outcome.SUCCESS, Outcome.WARNING, Outcome.WARNING, Outcome.WARNING, Outcome.WARNING,
        ]
        assert report.aborted is False
        assert report.exit_code() == 2


class TestDisableSignIn:
    """Test the disable sign-in step"""

    def test_already_disabled_is_noop(self, clients, workflow):
        """Test no update call is made when sign-in is already blocked"""
        clients.directory.get_user.return_value = make_identity(enabled=False)

        report = workflow.run(UPN)

        clients.directory.disable_sign_in.assert_not_called()
        assert step_result(report, STEP_DISABLE).outcome is Outcome.INFO

    def test_failure_is_warning(self, clients, workflow):
        """Test a failed update is reported as a warning"""
        clients.directory.disable_sign_in.side_effect = GraphAPIError("denied", status_code=403)

        report = workflow.run(UPN)

        assert step_result(report, STEP_DISABLE).outcome is Outcome.WARNING
        clients.directory.reset_password.assert_called_once()


class TestResetCredential:
    """Test the credential reset step"""

    def test_password_not_in_report(self, clients, workflow):
        """Test the generated password never reaches the report"""
        report = workflow.run(UPN)

        assert step_result(report, STEP_RESET).outcome is Outcome.SUCCESS
        assert all(SECRET not in result.message for result in report.results)

    def test_fresh_password_each_run(self, clients):
        """Test each run generates and applies a new password"""
        factory = Mock(side_effect=['first-generated-password', 'second-generated-password'])
        workflow = OffboardingWorkflow(clients.directory, clients.mailbox, password_factory=factory)

        workflow.run(UPN)
        workflow.run(UPN)

        passwords = [c.args[1] for c in clients.directory.reset_password.call_args_list]
        assert passwords == ['first-generated-password', 'second-generated-password']

    def test_failure_is_warning(self, clients, workflow):
        """Test a failed reset is reported as a warning"""
        clients.directory.reset_password.side_effect = GraphAPIError(
            "Password does not comply with policy", status_code=400,
        )

        report = workflow.run(UPN)

        result = step_result(report, STEP_RESET)
        assert result.outcome is Outcome.WARNING
        assert SECRET not in result.message


class TestRevokeSessions:
    """Test the session revocation step"""

    def test_not_found_is_informational(self, clients, workflow):
        """Test not-found during revocation is downgraded to info"""
        clients.directory.revoke_sign_in_sessions.side_effect = GraphAPIError(
            "User not found", kind=ErrorKind.NOT_FOUND, status_code=404,
        )

        report = workflow.run(UPN)

        assert step_result(report, STEP_REVOKE).outcome is Outcome.INFO
        assert report.has_warnings is False

    def test_other_error_is_warning(self, clients, workflow):
        """Test any other revocation failure is a warning"""
        clients.directory.revoke_sign_in_sessions.side_effect = GraphAPIError(
            "Too many requests", kind=ErrorKind.THROTTLED, status_code=429,
        )

        report = workflow.run(UPN)

        assert step_result(report, STEP_REVOKE).outcome is Outcome.WARNING
        clients.mailbox.get_mailbox.assert_called_once_with(UPN)


class TestConvertMailbox:
    """Test the mailbox conversion step"""

    def test_no_mailbox_is_skipped(self, clients, workflow):
        """Test users without a mailbox skip conversion"""
        clients.mailbox.get_mailbox.return_value = None

        report = workflow.run(UPN)

        clients.mailbox.set_mailbox_type.assert_not_called()
        assert step_result(report, STEP_MAILBOX).outcome is Outcome.INFO

    def test_already_shared_is_noop(self, clients, workflow):
        """Test a shared mailbox is not converted again"""
        clients.mailbox.get_mailbox.return_value = make_mailbox(recipient_type=MailboxType.SHARED)

        report = workflow.run(UPN)

        clients.mailbox.set_mailbox_type.assert_not_called()
        assert step_result(report, STEP_MAILBOX).outcome is Outcome.INFO

    def test_litigation_hold_blocks_conversion(self, clients, workflow):
        """Test litigation hold prevents conversion"""
        clients.mailbox.get_mailbox.return_value = make_mailbox(litigation_hold=True)

        report = workflow.run(UPN)

        clients.mailbox.set_mailbox_type.assert_not_called()
        result = step_result(report, STEP_MAILBOX)
        assert result.outcome is Outcome.WARNING
        assert 'litigation hold' in result.message
        assert 'manually' in result.message

    def test_in_place_hold_blocks_conversion(self, clients, workflow):
        """Test in-place holds prevent conversion"""
        clients.mailbox.get_mailbox.return_value = make_mailbox(in_place_holds=['mbx1a2b3c'])

        report = workflow.run(UPN)

        clients.mailbox.set_mailbox_type.assert_not_called()
        assert step_result(report, STEP_MAILBOX).outcome is Outcome.WARNING

    def test_success_mentions_license_threshold(self, clients, workflow):
        """Test the success message reminds about license removal"""
        report = workflow.run(UPN)

        assert '50 GB' in step_result(report, STEP_MAILBOX).message

    def test_conversion_failure_is_warning(self, clients, workflow):
        """Test a failed conversion is reported as a warning"""
        clients.mailbox.set_mailbox_type.side_effect = ExchangeAPIError("denied", status_code=403)

        report = workflow.run(UPN)

        assert step_result(report, STEP_MAILBOX).outcome is Outcome.WARNING
        assert len(report.results) == 5


def make_response(status_code, body=None):
    response = requests.Response()
    response.status_code = status_code
    response.encoding = 'utf-8'
    response._content = json.dumps(body).encode('utf-8') if body is not None else b''
    return response


def graph_session(reset_status=204, revoke_status=200):
    """Mocked Graph session answering each offboarding request"""
    not_found = {'error': {'code': 'Request_ResourceNotFound', 'message': 'gone'}}
    password_error = {'error': {'code': 'Request_BadRequest', 'message': 'Password does not comply'}}

    def request(method, url, **kwargs):
        if method == 'GET':
            return make_response(200, {
                'id': 'u1', 'userPrincipalName': UPN,
                'displayName': 'Example User', 'accountEnabled': True,
            })
        if method == 'PATCH' and 'passwordProfile' in kwargs['json']:
            return make_response(reset_status, password_error if reset_status >= 400 else None)
        if method == 'PATCH':
            return make_response(204)
        return make_response(revoke_status, not_found if revoke_status == 404 else {'value': True})

    session = Mock()
    session.request.side_effect = request
    return session


class TestLogOutput:
    """Test what the workflow and Graph client write to the log"""

    @pytest.fixture
    def records(self, caplog, monkeypatch):
        setup_logging()
        caplog.set_level(logging.DEBUG)
        # Fresh loggers so the current structlog configuration applies
        monkeypatch.setattr(graph_module, 'logger', structlog.get_logger('offboarding.graph'))
        monkeypatch.setattr(workflow_module, 'logger', structlog.get_logger('offboarding.workflow'))
        return caplog

    def run_workflow(self, session):
        token_provider = Mock()
        token_provider.get_token.return_value = 'access-token'
        mailbox = Mock()
        mailbox.get_mailbox.return_value = None
        workflow = OffboardingWorkflow(GraphAPI(token_provider, session=session), mailbox,
                                       password_factory=lambda: SECRET)
        return workflow.run(UPN)

    def test_password_not_logged(self, records):
        """Test the generated password appears in no log record"""
        report = self.run_workflow(graph_session())

        assert step_result(report, STEP_RESET).outcome is Outcome.SUCCESS
        assert records.records
        assert all(SECRET not in record.getMessage() for record in records.records)

    def test_password_not_logged_on_failure(self, records):
        """Test a rejected password reset does not log the password"""
        report = self.run_workflow(graph_session(reset_status=400))

        assert step_result(report, STEP_RESET).outcome is Outcome.WARNING
        assert all(SECRET not in record.getMessage() for record in records.records)

    def test_revoke_not_found_logs_no_error(self, records):
        """Test not-found during revocation stays below warning level"""
        report = self.run_workflow(graph_session(revoke_status=404))

        assert step_result(report, STEP_REVOKE).outcome is Outcome.INFO
        assert not any(record.levelno >= logging.WARNING for record in records.records)

    def test_resolve_not_found_logs_single_error(self, records):
        """Test a missing user produces exactly one error record"""
        session = Mock()
        session.request.return_value = make_response(404, {
            'error': {'code': 'Request_ResourceNotFound', 'message': 'gone'}
        })

        report = self.run_workflow(session)

        assert report.outcomes() == [Outcome.FATAL]
        errors = [record for record in records.records if record.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert 'not found' in errors[0].getMessage()
