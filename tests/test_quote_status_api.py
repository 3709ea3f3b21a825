"""API tests for the quote, status and approval endpoints."""

import pytest
from sqlalchemy import update

from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.user_role import UserRole
from vision_pos.models.quotes.quote_models import Quote
from vision_pos.services.quotes import quote_status_service

READY_PAYLOAD = {
    "exam_services": [{"code": "EXAM-COMP", "price": "120.00"}],
    "eyeglasses": {"items": [{"sku": "FRAME-01"}]},
    "patient_info": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@visionpos.com"},
    "total": "250.00",
}


async def create_quote(api, **overrides):
    response = await api.post("/quotes", json={**READY_PAYLOAD, **overrides})
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def change_status(api, quote_id, new_status, **extra):
    return await api.patch(f"/quotes/{quote_id}/status", json={"new_status": new_status, **extra})


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_check(self, api):
        response = await api.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestQuoteCrud:
    @pytest.mark.asyncio
    async def test_create_quote(self, api):
        data = await create_quote(api)

        assert data["status"] == "BUILDING"
        assert data["quote_number"] == f"QT-{data['id']:06d}"
        assert data["location_id"] == "store-1"
        assert data["version"] == 1
        assert data["created_by_name"] == "sales_associate@visionpos.com"
        assert data["last_activity_at"] is not None

    @pytest.mark.asyncio
    async def test_get_and_list(self, api):
        data = await create_quote(api)

        single = await api.get(f"/quotes/{data['id']}")
        listing = await api.get("/quotes/", params={"status": "BUILDING"})

        assert single.json()["data"]["id"] == data["id"]
        assert listing.json()["data"]["total"] == 1
        assert listing.json()["data"]["items"][0]["customer_name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_missing_quote(self, api):
        response = await api.get("/quotes/999")

        assert response.status_code == 404
        assert response.json()["error_code"] == "QUOTE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_update_with_stale_version(self, api):
        data = await create_quote(api)

        response = await api.patch(f"/quotes/{data['id']}", json={"notes": "rush", "version": 7})

        assert response.status_code == 409
        assert response.json()["error_code"] == "QUOTE_VERSION_CONFLICT"

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, api):
        data = await create_quote(api)

        response = await api.patch(f"/quotes/{data['id']}", json={"notes": "rush", "version": 1})

        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "rush"
        assert response.json()["data"]["version"] == 2

    @pytest.mark.asyncio
    async def test_presented_quote_is_not_editable(self, api):
        data = await create_quote(api)
        await change_status(api, data["id"], "PRESENTED")

        response = await api.patch(f"/quotes/{data['id']}", json={"notes": "late", "version": 2})

        assert response.status_code == 400
        assert response.json()["error_code"] == "QUOTE_INVALID_STATE"

    @pytest.mark.asyncio
    async def test_progress_flags(self, api):
        data = await create_quote(api, insurance_info={"carrier": "VSP", "member_id": "123"})

        response = await api.patch(
            f"/quotes/{data['id']}/progress",
            json={"exam_signature_completed": True, "insurance_verified": True, "version": 1},
        )
        quote = response.json()["data"]

        assert response.status_code == 200
        assert quote["exam_signature_completed"] is True
        assert quote["insurance_info"]["verified"] is True
        assert quote["version"] == 2


class TestStatusChange:
    @pytest.mark.asyncio
    async def test_present_quote(self, api):
        data = await create_quote(api)

        response = await change_status(api, data["id"], "PRESENTED", user_comment="walked through options")
        body = response.json()["data"]

        assert response.status_code == 200
        assert body["changed"] is True
        assert body["quote"]["status"] == "PRESENTED"
        assert body["quote"]["previous_status"] == "BUILDING"
        assert body["quote"]["presented_at"] is not None
        assert body["quote"]["version"] == 2

        history = (await api.get(f"/quotes/{data['id']}/status/history")).json()["data"]
        assert len(history) == 1
        assert history[0]["reason"] == "Quote presented to customer"
        assert history[0]["user_comment"] == "walked through options"

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, api):
        data = await create_quote(api)

        response = await change_status(api, data["id"], "BUILDING")

        assert response.status_code == 200
        assert response.json()["data"]["changed"] is False
        assert response.json()["data"]["quote"]["version"] == 1

    @pytest.mark.asyncio
    async def test_blocked_transition(self, api):
        data = await create_quote(api, patient_info=None)

        response = await change_status(api, data["id"], "PRESENTED")
        body = response.json()

        assert response.status_code == 400
        assert body["error_code"] == "QUOTE_TRANSITION_BLOCKED"
        assert "Customer information is required before presenting quote" in body["details"]["errors"]

    @pytest.mark.asyncio
    async def test_stale_status_write(self, api, monkeypatch):
        """Should report a concurrent change between validation and write."""
        data = await create_quote(api)
        original = quote_status_service._validate

        async def racing_validate(db, q, *args, **kwargs):
            result = await original(db, q, *args, **kwargs)
            await db.execute(
                update(Quote)
                .where(Quote.id == q.id)
                .values(version=Quote.version + 1)
                .execution_options(synchronize_session=False)
            )
            return result

        monkeypatch.setattr(quote_status_service, "_validate", racing_validate)

        response = await change_status(api, data["id"], "DRAFT")

        assert response.status_code == 409
        assert response.json()["error_code"] == "QUOTE_STALE_STATE"

    @pytest.mark.asyncio
    async def test_version_guard(self, api):
        data = await create_quote(api)

        response = await change_status(api, data["id"], "DRAFT", version=3)

        assert response.status_code == 409
        assert response.json()["error_code"] == "QUOTE_VERSION_CONFLICT"

    @pytest.mark.asyncio
    async def test_reactivation_clears_expiry_bookkeeping(self, api, quote_factory):
        quote = await quote_factory(
            QuoteStatus.EXPIRED,
            expire_notification_sent=True,
            expiration_warning_sent=True,
        )

        response = await change_status(api, quote.id, "DRAFT")
        body = response.json()["data"]["quote"]

        assert response.status_code == 200
        assert body["status"] == "DRAFT"
        assert body["previous_status"] == "EXPIRED"
        assert body["expired_at"] is None
        assert body["expire_notification_sent"] is False
        assert body["expiration_warning_sent"] is False


class TestStatusRead:
    @pytest.mark.asyncio
    async def test_status_overview(self, api):
        data = await create_quote(
            api,
            eyeglasses=None,
        )

        response = await api.get(f"/quotes/{data['id']}/status")
        body = response.json()["data"]

        assert response.status_code == 200
        assert body["status"] == "BUILDING"
        assert body["state_info"]["label"] == "Building"
        assert body["state_info"]["can_edit"] is True
        assert body["next_valid_states"] == ["DRAFT", "PRESENTED", "CANCELLED"]
        assert body["requirements"]["has_valid_items"] is True
        assert body["requirements"]["has_required_signatures"] is False
        assert body["expiration"]["is_expirable"] is False
        assert body["expiration"]["expires_at"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "role,status,expected",
        [
            (UserRole.SALES_ASSOCIATE, QuoteStatus.SIGNED, ["CANCELLED"]),
            (UserRole.MANAGER, QuoteStatus.SIGNED, ["COMPLETED", "CANCELLED"]),
            (UserRole.SALES_ASSOCIATE, QuoteStatus.DRAFT, ["BUILDING", "PRESENTED", "CANCELLED"]),
            (UserRole.MANAGER, QuoteStatus.DRAFT, ["BUILDING", "PRESENTED", "CANCELLED", "EXPIRED"]),
        ],
    )
    async def test_next_states_follow_caller_permissions(self, api, quote_factory, role, status, expected):
        """Should hide moves the caller's role can never make."""
        quote = await quote_factory(status)
        api.act_as(role)

        body = (await api.get(f"/quotes/{quote.id}/status")).json()["data"]

        assert body["next_valid_states"] == expected

    @pytest.mark.asyncio
    async def test_preview_does_not_persist(self, api):
        data = await create_quote(api, exam_services=[], eyeglasses=None)

        response = await api.post(f"/quotes/{data['id']}/status/preview", json={"new_status": "DRAFT"})
        body = response.json()["data"]

        assert response.status_code == 200
        assert body["is_valid"] is False
        assert body["summary"] == "Blocked: 1 errors"
        assert (await api.get(f"/quotes/{data['id']}")).json()["data"]["status"] == "BUILDING"


class TestApprovalFlow:
    @pytest.mark.asyncio
    async def test_cancel_signed_quote_through_approval(self, api, quote_factory):
        quote = await quote_factory(QuoteStatus.SIGNED)

        requested = await change_status(api, quote.id, "CANCELLED", reason="Customer changed mind")
        requested_body = requested.json()["data"]

        assert requested.status_code == 200
        assert requested_body["changed"] is False
        assert requested_body["requires_approval"] is True
        assert requested_body["quote"]["status"] == "SIGNED"
        approval_id = requested_body["approval_id"]

        # asking again reuses the pending request
        again = await change_status(api, quote.id, "CANCELLED")
        assert again.json()["data"]["approval_id"] == approval_id

        premature = await change_status(api, quote.id, "CANCELLED", approval_id=approval_id)
        assert premature.status_code == 409
        assert premature.json()["error_code"] == "APPROVAL_INVALID"

        api.act_as(UserRole.MANAGER)
        pending = (await api.get("/quotes/approvals/")).json()["data"]
        assert [a["id"] for a in pending["items"]] == [approval_id]

        approved = await api.post(f"/quotes/approvals/{approval_id}/approve")
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "APPROVED"

        api.act_as(UserRole.SALES_ASSOCIATE)
        done = await change_status(
            api, quote.id, "CANCELLED", approval_id=approval_id, reason="Customer changed mind"
        )
        done_body = done.json()["data"]

        assert done.status_code == 200
        assert done_body["changed"] is True
        assert done_body["quote"]["status"] == "CANCELLED"
        assert done_body["quote"]["cancelled_at"] is not None
        assert done_body["approval_id"] == approval_id

        history = (await api.get(f"/quotes/{quote.id}/status/history")).json()["data"]
        assert history[-1]["approval_request_id"] == approval_id
        assert history[-1]["reason"] == "Customer changed mind"

    @pytest.mark.asyncio
    async def test_reject_request(self, api, quote_factory):
        quote = await quote_factory(QuoteStatus.SIGNED)
        approval_id = (await change_status(api, quote.id, "CANCELLED")).json()["data"]["approval_id"]

        api.act_as(UserRole.ADMIN)
        rejected = await api.post(
            f"/quotes/approvals/{approval_id}/reject",
            json={"rejection_reason": "Lenses already cut"},
        )
        twice = await api.post(f"/quotes/approvals/{approval_id}/approve")

        assert rejected.status_code == 200
        assert rejected.json()["data"]["status"] == "REJECTED"
        assert rejected.json()["data"]["rejection_reason"] == "Lenses already cut"
        assert twice.status_code == 409
        assert twice.json()["error_code"] == "APPROVAL_INVALID"

    @pytest.mark.asyncio
    async def test_manager_cancels_without_approval(self, api, quote_factory):
        quote = await quote_factory(QuoteStatus.SIGNED)
        api.act_as(UserRole.MANAGER)

        response = await change_status(api, quote.id, "CANCELLED")

        assert response.json()["data"]["changed"] is True
        assert response.json()["data"]["requires_approval"] is False

    @pytest.mark.asyncio
    async def test_sales_cannot_list_approvals(self, api):
        response = await api.get("/quotes/approvals/")

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"


class TestExpirationRun:
    @pytest.mark.asyncio
    async def test_manager_dry_run(self, api, quote_factory):
        await quote_factory(QuoteStatus.DRAFT, days_inactive=400)
        api.act_as(UserRole.MANAGER)

        response = await api.post("/quotes/expiration/run", json={"dry_run": True})
        body = response.json()["data"]

        assert response.status_code == 200
        assert body["dry_run"] is True
        assert body["quotes_checked"] == 1
        assert body["quotes_expired"] == 1

    @pytest.mark.asyncio
    async def test_sales_cannot_run(self, api):
        response = await api.post("/quotes/expiration/run", json={})
        assert response.status_code == 403
