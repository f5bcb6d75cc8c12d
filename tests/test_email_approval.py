# tests/test_email_approval.py
"""Approval tokens + the unauthenticated email-link approval path."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
import jwt
from datetime import timedelta
from urllib.parse import parse_qs, urlparse
from unittest.mock import patch
from conftest import visit_data, drain_notifications
from siteaccess.config import settings
from siteaccess.errors import ConflictError, NotFoundError, ValidationError
from siteaccess.models.enums import VisitStatus
from siteaccess.services import approval_token_service, notification_service, visitor_service
from siteaccess.services.email_approval_service import resolve_email_approval


def _token_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


class TestApprovalTokens:
    def test_signed_token_resolves_to_employee(self, db, make_employee):
        employee = make_employee()
        token = approval_token_service.issue_approval_token(employee)
        assert approval_token_service.verify_approval_token(db, token).id == employee.id

    def test_token_is_stable_without_ttl(self, make_employee):
        employee = make_employee()
        assert approval_token_service.issue_approval_token(employee) == \
            approval_token_service.issue_approval_token(employee)

    def test_token_from_other_secret_rejected(self, db, make_employee):
        employee = make_employee()
        forged = jwt.encode({"sub": employee.id, "eh": "x", "pur": "visit-approval"},
                            "some-other-secret", algorithm="HS256")
        with pytest.raises(NotFoundError):
            approval_token_service.verify_approval_token(db, forged)

    def test_email_change_revokes_token(self, db, make_employee):
        employee = make_employee()
        token = approval_token_service.issue_approval_token(employee)
        employee.email = "moved@example.com"
        db.commit()
        with pytest.raises(NotFoundError):
            approval_token_service.verify_approval_token(db, token)

    def test_expired_token_rejected(self, db, make_employee):
        employee = make_employee()
        token = approval_token_service.issue_approval_token(employee, ttl_hours=-1)
        with pytest.raises(NotFoundError, match="expired"):
            approval_token_service.verify_approval_token(db, token)

    def test_inactive_employee_rejected(self, db, make_employee):
        employee = make_employee(is_active=False)
        token = approval_token_service.issue_approval_token(employee)
        with pytest.raises(NotFoundError):
            approval_token_service.verify_approval_token(db, token)

    def test_legacy_token_found_by_directory_scan(self, db, make_employee):
        make_employee(first_name="Other", last_name="Person")
        employee = make_employee()
        legacy = approval_token_service.derive_legacy_token(employee)
        assert len(legacy) == 64
        assert approval_token_service.verify_approval_token(db, legacy).id == employee.id

    def test_legacy_tokens_can_be_switched_off(self, db, make_employee):
        employee = make_employee()
        legacy = approval_token_service.derive_legacy_token(employee)
        with patch.object(settings, "APPROVAL_ACCEPT_LEGACY_TOKENS", False):
            with pytest.raises(NotFoundError):
                approval_token_service.verify_approval_token(db, legacy)

    @pytest.mark.parametrize("token", ["café-token", "ünïcödé.täken.sïg", "x" * 63 + "é"])
    def test_non_ascii_token_is_not_found(self, db, make_employee, token):
        make_employee()
        with pytest.raises(NotFoundError):
            approval_token_service.verify_approval_token(db, token)

    def test_links_point_at_email_endpoint(self, make_employee):
        employee = make_employee()
        links = approval_token_service.build_approval_links(employee, base_url="https://gate.example.com/")
        assert links["approve_url"].startswith("https://gate.example.com/api/v1/visitors/approve-email?")
        assert parse_qs(urlparse(links["approve_url"]).query)["action"] == ["approve"]
        assert _token_from(links["approve_url"]) == _token_from(links["reject_url"])


class TestEmailApproval:
    @pytest.mark.asyncio
    async def test_link_from_notification_approves_visit(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        await drain_notifications()
        payload = notifier.send.await_args.args[2]
        notifier.send.reset_mock()

        approved, details = await resolve_email_approval(db, _token_from(payload["approve_url"]),
                                                         "approve", notifier)
        await drain_notifications()

        assert approved.id == visit.id
        assert approved.status == VisitStatus.APPROVED.value
        assert approved.approved_by_id == host.id
        assert approved.qr_code
        assert details == {"other_pending_visits": 0, "host": host.full_name}

        kind, recipient, update = notifier.send.await_args.args
        assert kind == notification_service.VISIT_STATUS_UPDATE
        assert recipient == "john.mwangi@example.com"
        assert update["status"] == "approved"

    @pytest.mark.asyncio
    async def test_reject_link_uses_fixed_reason(self, db, make_employee, notifier):
        host = make_employee()
        await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        token = approval_token_service.issue_approval_token(host)

        visit, _ = await resolve_email_approval(db, token, "REJECT", notifier)
        assert visit.status == VisitStatus.REJECTED.value
        assert visit.rejection_reason == "Rejected by host employee via email"

    @pytest.mark.asyncio
    async def test_legacy_link_still_works(self, db, make_employee, notifier):
        host = make_employee()
        await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        visit, _ = await resolve_email_approval(
            db, approval_token_service.derive_legacy_token(host), "approve", notifier)
        assert visit.status == VisitStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_unknown_action(self, db, make_employee, notifier):
        host = make_employee()
        token = approval_token_service.issue_approval_token(host)
        with pytest.raises(ValidationError):
            await resolve_email_approval(db, token, "maybe", notifier)

    @pytest.mark.asyncio
    async def test_unknown_token(self, db, notifier):
        with pytest.raises(NotFoundError):
            await resolve_email_approval(db, "not-a-real-token", "approve", notifier)

    @pytest.mark.asyncio
    async def test_no_pending_visit(self, db, make_employee, notifier):
        host = make_employee()
        await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        token = approval_token_service.issue_approval_token(host)
        with pytest.raises(NotFoundError, match="No pending visitor"):
            await resolve_email_approval(db, token, "approve", notifier)

    @pytest.mark.asyncio
    async def test_newest_pending_visit_wins(self, db, make_employee, notifier):
        host = make_employee()
        older = await visitor_service.create_visit(db, visit_data(host.email, first_name="Older"),
                                                   False, "guard-1", notifier)
        older.created_at = older.created_at - timedelta(minutes=5)
        db.commit()
        newer = await visitor_service.create_visit(db, visit_data(host.email, first_name="Newer"),
                                                   False, "guard-1", notifier)
        token = approval_token_service.issue_approval_token(host)

        visit, details = await resolve_email_approval(db, token, "approve", notifier)

        assert visit.id == newer.id
        assert details["other_pending_visits"] == 1
        assert visitor_service.get_visit(db, older.id).status == VisitStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_strict_mode_refuses_ambiguous_link(self, db, make_employee, notifier):
        host = make_employee()
        first = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        second = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        token = approval_token_service.issue_approval_token(host)

        with patch.object(settings, "APPROVAL_STRICT_SINGLE_PENDING", True):
            with pytest.raises(ConflictError):
                await resolve_email_approval(db, token, "approve", notifier)

        for visit_id in (first.id, second.id):
            assert visitor_service.get_visit(db, visit_id).status == VisitStatus.PENDING.value
