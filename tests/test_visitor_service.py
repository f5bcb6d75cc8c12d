# tests/test_visitor_service.py
"""Unit tests for the visitor lifecycle and the reception gate."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import timedelta
from sqlalchemy import text
from unittest.mock import AsyncMock, patch
from conftest import visit_data, drain_notifications
from siteaccess.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from siteaccess.models.enums import AuditAction, VisitStatus
from siteaccess.services import notification_service, visitor_service
from siteaccess.services.audit_service import list_audit_entries


async def _checked_in_visit(db, host, notifier):
    visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
    return await visitor_service.check_in_visit(db, visit.id, "guard-1", notifier)


class TestTransitionTable:
    def test_pending_can_be_approved_or_rejected(self):
        assert visitor_service.can_transition("pending", VisitStatus.APPROVED)
        assert visitor_service.can_transition("pending", VisitStatus.REJECTED)
        assert not visitor_service.can_transition("pending", VisitStatus.CHECKED_IN)

    def test_terminal_states_have_no_exits(self):
        for status in ("rejected", "checked_out", "expired"):
            for target in VisitStatus:
                assert not visitor_service.can_transition(status, target)


class TestCreateVisit:
    @pytest.mark.asyncio
    async def test_pending_visit_stores_resolved_host_and_requests_approval(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.full_name), False, "guard-1", notifier)
        await drain_notifications()

        assert visit.status == VisitStatus.PENDING.value
        assert visit.host_employee == host.email
        assert visit.host_employee_id == host.id
        assert visit.qr_code is None

        notifier.send.assert_awaited_once()
        kind, recipient, payload = notifier.send.await_args.args
        assert kind == notification_service.VISIT_APPROVAL_REQUEST
        assert recipient == host.email
        assert "approve-email" in payload["approve_url"]
        assert payload["reject_url"].endswith("action=reject")

    @pytest.mark.asyncio
    async def test_host_resolved_by_id(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.id), False, "guard-1", notifier)
        assert visit.host_employee_id == host.id

    @pytest.mark.asyncio
    async def test_unknown_host_rejected(self, db, notifier):
        with pytest.raises(ValidationError, match="host employee not found"):
            await visitor_service.create_visit(db, visit_data("nobody@example.com"), False, "guard-1", notifier)

    @pytest.mark.asyncio
    async def test_auto_approve_issues_credential_without_notification(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        await drain_notifications()

        assert visit.status == VisitStatus.APPROVED.value
        assert visit.approved_by_id == "guard-1"
        assert visit.qr_code.startswith(f"VISITOR:{visit.id}:ID-12345678:")
        notifier.send.assert_not_awaited()


class TestApproveReject:
    @pytest.mark.asyncio
    async def test_approve_generates_credential_once(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        visit = await visitor_service.approve_visit(db, visit.id, "guard-2")
        qr = visit.qr_code
        assert qr and visit.approved_by_id == "guard-2"

        visit = await visitor_service.check_in_visit(db, visit.id, "guard-2", notifier)
        assert visit.qr_code == qr

    @pytest.mark.asyncio
    async def test_approve_twice_is_invalid(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        with pytest.raises(InvalidStateError):
            await visitor_service.approve_visit(db, visit.id, "guard-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   ", "too short"])
    async def test_reject_requires_meaningful_reason(self, db, make_employee, notifier, reason):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        with pytest.raises(ValidationError):
            await visitor_service.reject_visit(db, visit.id, reason, "guard-1")
        assert visitor_service.get_visit(db, visit.id).status == VisitStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_reject_records_reason(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        visit = await visitor_service.reject_visit(db, visit.id, "  No appointment on record  ", "guard-1")
        assert visit.status == VisitStatus.REJECTED.value
        assert visit.rejection_reason == "No appointment on record"
        assert visit.qr_code is None

    @pytest.mark.asyncio
    async def test_reject_approved_visit_is_invalid(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        with pytest.raises(InvalidStateError):
            await visitor_service.reject_visit(db, visit.id, "Changed our minds entirely", "guard-1")

    @pytest.mark.asyncio
    async def test_missing_visit(self, db):
        with pytest.raises(NotFoundError):
            await visitor_service.approve_visit(db, "does-not-exist", "guard-1")

    @pytest.mark.asyncio
    async def test_stale_write_becomes_conflict(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        # Another writer bumps the row behind this session's back
        db.execute(text("UPDATE visits SET version = version + 1 WHERE id = :id"), {"id": visit.id})

        with pytest.raises(ConflictError):
            await visitor_service.approve_visit(db, visit.id, "guard-1")


class TestGate:
    @pytest.mark.asyncio
    async def test_check_in_writes_audit_and_alerts_host(self, db, make_employee, notifier):
        host = make_employee()
        visit = await _checked_in_visit(db, host, notifier)
        await drain_notifications()

        assert visit.status == VisitStatus.CHECKED_IN.value
        assert visit.actual_check_in is not None
        entries = list_audit_entries(db, subject_id=visit.id)
        assert [e.action for e in entries] == [AuditAction.CHECK_IN.value]
        assert entries[0].location == "Main Gate"
        kind, recipient, payload = notifier.send.await_args.args
        assert kind == notification_service.VISITOR_CHECKED_IN
        assert recipient == host.email
        assert payload["host_name"] == host.full_name

    @pytest.mark.asyncio
    async def test_check_in_pending_is_invalid(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        with pytest.raises(InvalidStateError):
            await visitor_service.check_in_visit(db, visit.id, "guard-1", notifier)

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_check_in(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        notifier.send = AsyncMock(side_effect=RuntimeError("relay down"))

        visit = await visitor_service.check_in_visit(db, visit.id, "guard-1", notifier)
        await drain_notifications()

        assert visit.status == VisitStatus.CHECKED_IN.value
        notifier.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_host_lookup_failure_does_not_fail_check_in(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)

        with patch.object(visitor_service, "resolve_display_name",
                          side_effect=RuntimeError("directory down")):
            visit = await visitor_service.check_in_visit(db, visit.id, "guard-1", notifier)
        await drain_notifications()

        assert visit.status == VisitStatus.CHECKED_IN.value
        kind, recipient, payload = notifier.send.await_args.args
        assert kind == notification_service.VISITOR_CHECKED_IN
        assert recipient == host.email
        assert payload["host_name"] is None

    @pytest.mark.asyncio
    async def test_check_out_requires_reception_confirmation(self, db, make_employee, notifier):
        host = make_employee()
        visit = await _checked_in_visit(db, host, notifier)

        with pytest.raises(InvalidStateError, match="confirmed at reception"):
            await visitor_service.check_out_visit(db, visit.id, "guard-1")
        visit = visitor_service.get_visit(db, visit.id)
        assert visit.status == VisitStatus.CHECKED_IN.value
        assert visit.actual_check_out is None

    @pytest.mark.asyncio
    async def test_confirm_is_idempotent(self, db, make_employee, notifier):
        host = make_employee()
        visit = await _checked_in_visit(db, host, notifier)

        visit, first = await visitor_service.confirm_visit(db, visit.id, "reception-1")
        stamp = visit.reception_confirmed_at
        visit, second = await visitor_service.confirm_visit(db, visit.id, "reception-2")

        assert first is True and second is False
        assert visit.reception_confirmed_at == stamp
        assert visit.reception_confirmed_by_id == "reception-1"
        confirmations = list_audit_entries(db, subject_id=visit.id,
                                           action=AuditAction.RECEPTION_CONFIRMED.value)
        assert len(confirmations) == 1
        assert confirmations[0].location == "Reception"

    @pytest.mark.asyncio
    async def test_confirm_requires_checked_in(self, db, make_employee, notifier):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), True, "guard-1", notifier)
        with pytest.raises(InvalidStateError):
            await visitor_service.confirm_visit(db, visit.id, "reception-1")

    @pytest.mark.asyncio
    async def test_full_gate_flow(self, db, make_employee, notifier):
        host = make_employee()
        visit = await _checked_in_visit(db, host, notifier)
        await visitor_service.confirm_visit(db, visit.id, "reception-1")

        # Pretend the visit lasted 1h 25m
        visit.actual_check_in = visit.actual_check_in - timedelta(hours=1, minutes=25, seconds=5)
        db.commit()

        visit = await visitor_service.check_out_visit(db, visit.id, "guard-1", location="Gate B")
        assert visit.status == VisitStatus.CHECKED_OUT.value
        assert visit.visit_duration == "1h 25m"

        entries = list_audit_entries(db, subject_id=visit.id)
        assert {e.action for e in entries} == {"check_in", "reception_confirmed", "check_out"}
        checkout = [e for e in entries if e.action == "check_out"][0]
        assert checkout.location == "Gate B"
        assert "1h 25m" in checkout.note


class TestDeleteAndCredential:
    @pytest.mark.asyncio
    async def test_checked_in_visit_cannot_be_deleted(self, db, make_employee, notifier):
        host = make_employee()
        visit = await _checked_in_visit(db, host, notifier)
        with pytest.raises(InvalidStateError):
            await visitor_service.delete_visit(db, visit.id, "admin-1")
        assert visitor_service.get_visit(db, visit.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["pending", "approved", "rejected", "checked_out"])
    async def test_visit_deleted_outside_checked_in(self, db, make_employee, notifier, target):
        host = make_employee()
        visit = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        if target == "approved":
            await visitor_service.approve_visit(db, visit.id, "guard-1")
        elif target == "rejected":
            await visitor_service.reject_visit(db, visit.id, "No appointment on record", "guard-1")
        elif target == "checked_out":
            await visitor_service.approve_visit(db, visit.id, "guard-1")
            await visitor_service.check_in_visit(db, visit.id, "guard-1", notifier)
            await visitor_service.confirm_visit(db, visit.id, "reception-1")
            await visitor_service.check_out_visit(db, visit.id, "guard-1")
        visit_id = visit.id
        assert visitor_service.get_visit(db, visit_id).status == target

        await visitor_service.delete_visit(db, visit_id, "admin-1")
        with pytest.raises(NotFoundError):
            visitor_service.get_visit(db, visit_id)

    @pytest.mark.asyncio
    async def test_credential_only_for_approved_or_checked_in(self, db, make_employee, notifier):
        host = make_employee()
        pending = await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        with pytest.raises(InvalidStateError):
            visitor_service.get_visit_credential(db, pending.id)

        approved = await visitor_service.approve_visit(db, pending.id, "guard-1")
        credential = visitor_service.get_visit_credential(db, approved.id)
        assert credential["qr_code"] == approved.qr_code
        assert credential["visitor"]["name"] == "John Mwangi"


class TestListVisits:
    @pytest.mark.asyncio
    async def test_filters(self, db, make_employee, notifier):
        host = make_employee()
        await visitor_service.create_visit(db, visit_data(host.email), False, "guard-1", notifier)
        await visitor_service.create_visit(
            db, visit_data(host.email, first_name="Grace", company="Blue Ridge"), True, "guard-1", notifier)

        assert len(visitor_service.list_visits(db)) == 2
        assert len(visitor_service.list_visits(db, status="approved")) == 1
        found = visitor_service.list_visits(db, search="blue")
        assert [v.first_name for v in found] == ["Grace"]
        assert len(visitor_service.list_visits(db, host=host.id)) == 2
