"""Tests for the /otp endpoints."""

import re

import pytest
from sqlalchemy import select

from snapbuy_auth.models import OtpVerification
from tests.conftest import TEST_EMAIL, TEST_PHONE, TEST_PHONE_NORMALIZED


def _sent_code(sms_sender) -> str:
    match = re.search(r"\b(\d{6})\b", sms_sender.await_args.args[1])
    assert match is not None
    return match.group(1)


class TestSend:
    """POST /otp/send."""

    @pytest.mark.asyncio
    async def test_success_envelope(self, client, sms_sender):
        response = await client.post("/api/v1/otp/send", json={"phone": TEST_PHONE})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "OTP sent successfully"
        assert body["expiresAt"]
        assert sms_sender.await_args.args[0] == TEST_PHONE_NORMALIZED

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_success_false(self, client, sms_sender):
        sms_sender.return_value = False

        response = await client.post("/api/v1/otp/send", json={"phone": TEST_PHONE})

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "Failed to send OTP",
            "expiresAt": None,
        }

    @pytest.mark.asyncio
    async def test_rejects_malformed_phone(self, client, sms_sender):
        response = await client.post("/api/v1/otp/send", json={"phone": "12-34"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        sms_sender.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_accepts_prefixed_phone(self, client, sms_sender):
        response = await client.post(
            "/api/v1/otp/send", json={"phone": TEST_PHONE_NORMALIZED}
        )

        assert response.json()["success"] is True
        assert sms_sender.await_args.args[0] == TEST_PHONE_NORMALIZED

    @pytest.mark.asyncio
    async def test_rejects_foreign_country_code(self, client, sms_sender, db_session):
        """Only the configured prefix is accepted; nothing is stored or texted."""
        response = await client.post(
            "/api/v1/otp/send", json={"phone": "+14155550123"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        sms_sender.assert_not_awaited()
        rows = (await db_session.execute(select(OtpVerification))).scalars().all()
        assert rows == []


class TestVerify:
    """POST /otp/verify."""

    @pytest.mark.asyncio
    async def test_correct_code(self, client, sms_sender, test_user, db_session):
        await client.post("/api/v1/otp/send", json={"phone": TEST_PHONE})

        response = await client.post(
            "/api/v1/otp/verify",
            json={
                "phone": TEST_PHONE,
                "email": TEST_EMAIL,
                "otp": _sent_code(sms_sender),
            },
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["message"] == "Verified successfully!"
        db_session.expire_all()
        row = (await db_session.execute(select(OtpVerification))).scalar_one()
        assert row.verified is True
        assert row.user_id == test_user.id

    @pytest.mark.asyncio
    async def test_no_pending_code(self, client, test_user):  # noqa: ARG002
        response = await client.post(
            "/api/v1/otp/verify",
            json={"phone": TEST_PHONE, "email": TEST_EMAIL, "otp": "123456"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "No OTP found"

    @pytest.mark.asyncio
    async def test_unknown_account(self, client):
        response = await client.post(
            "/api/v1/otp/verify",
            json={"phone": TEST_PHONE, "email": "ghost@example.com", "otp": "1"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"


class TestResend:
    """POST /otp/resend."""

    @pytest.mark.asyncio
    async def test_old_code_stops_working(
        self, client, sms_sender, test_user  # noqa: ARG002
    ):
        await client.post("/api/v1/otp/send", json={"phone": TEST_PHONE})
        first = _sent_code(sms_sender)

        response = await client.post("/api/v1/otp/resend", json={"phone": TEST_PHONE})
        second = _sent_code(sms_sender)

        assert response.json()["success"] is True
        if first != second:
            stale = await client.post(
                "/api/v1/otp/verify",
                json={"phone": TEST_PHONE, "email": TEST_EMAIL, "otp": first},
            )
            assert stale.json()["success"] is False

        fresh = await client.post(
            "/api/v1/otp/verify",
            json={"phone": TEST_PHONE, "email": TEST_EMAIL, "otp": second},
        )
        assert fresh.json()["success"] is True
