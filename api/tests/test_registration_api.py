"""
Tests for the backend registration and payment API clients.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from app.api.registration_flow.models import PaymentRequest, PlayerDetails, Program
from app.api.registration_flow.payment_service import PaymentApiClient
from app.api.registration_flow.registration_api import (
    RegistrationApiClient,
    filter_open_programs,
)
from app.api.workflow_base.exceptions import PaymentException, RegistrationServiceException


def mock_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def registration_api():
    return RegistrationApiClient("http://backend.test/", api_token="test-token", timeout=5.0)


@pytest.fixture
def payment_api():
    return PaymentApiClient("http://backend.test", api_token="test-token")


class TestRegistrationApiClient:
    """Test registration endpoints."""

    @pytest.mark.asyncio
    async def test_get_status_normalizes_form_data(self, registration_api):
        body = {
            "id": "R123",
            "program": {"id": "p1", "name": "Spring Soccer", "base_fee": 120},
            "form_data": [
                {"field_name": "first_name", "field_value": "Ada", "field_label": "First Name"},
                {"field_name": "email", "field_value": "ada@example.com"},
            ],
            "financial_summary": {"base_fee": 120, "balance_due": 120},
            "balance_due": 120,
            "total_amount_due": 120,
        }

        with patch("httpx.AsyncClient") as mock_client:
            get = AsyncMock(return_value=mock_response(200, body))
            mock_client.return_value.__aenter__.return_value.get = get

            status = await registration_api.get_status("R123")

        assert status.form_data == {"first_name": "Ada", "email": "ada@example.com"}
        assert status.balance_due == 120
        assert status.program.name == "Spring Soccer"

        url = get.call_args.args[0]
        headers = get.call_args.kwargs["headers"]
        assert url == "http://backend.test/api/registration-flow/R123/status"
        assert headers["Authorization"] == "Bearer test-token"
        assert get.call_args.kwargs["timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_flow_update_from_status(self, registration_api):
        body = {
            "program": {"id": "p1", "name": "Spring Soccer"},
            "form_data": {"first_name": "Ada"},
            "financial_summary": {"base_fee": 120, "balance_due": 60},
        }

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response(200, body)
            )

            status = await registration_api.get_status("R123")

        update = status.to_flow_update()
        assert update["form_data"] == {"first_name": "Ada"}
        assert update["fee_calculation"]["balance_due"] == 60
        assert update["selected_program"]["id"] == "p1"

    @pytest.mark.asyncio
    async def test_http_error_raises_with_backend_message(self, registration_api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response(404, {"error": "Registration not found"})
            )

            with pytest.raises(RegistrationServiceException) as exc_info:
                await registration_api.get_status("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.user_message == "Registration not found"

    @pytest.mark.asyncio
    async def test_timeout_raises(self, registration_api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.TimeoutException("timed out")
            )

            with pytest.raises(RegistrationServiceException, match="timed out"):
                await registration_api.get_status("R123")

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self, registration_api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(200, None)
            )

            with pytest.raises(RegistrationServiceException):
                await registration_api.finalize("R123")

    @pytest.mark.asyncio
    async def test_list_programs_skips_malformed(self, registration_api):
        body = {"programs": [{"id": "p1", "name": "Soccer"}, {"name": "No id"}]}

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=mock_response(200, body)
            )

            programs = await registration_api.list_programs()

        assert [program.id for program in programs] == ["p1"]

    @pytest.mark.asyncio
    async def test_create_player_and_registration(self, registration_api):
        player = PlayerDetails(first_name="Ada", last_name="Lovelace", email="ada@example.com")

        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(
                side_effect=[
                    mock_response(201, {"player": {"id": "player-1"}}),
                    mock_response(201, {"registration": {"id": "R555"}}),
                ]
            )
            mock_client.return_value.__aenter__.return_value.post = post

            player_id = await registration_api.create_player(player)
            registration_id = await registration_api.create_registration(
                player_id, "p1", "Allergic to peanuts"
            )

        assert player_id == "player-1"
        assert registration_id == "R555"

        player_payload = post.call_args_list[0].kwargs["json"]
        assert player_payload["organization"] == "Public Registration"
        assert player_payload["first_name"] == "Ada"
        registration_payload = post.call_args_list[1].kwargs["json"]
        assert registration_payload == {
            "player_id": "player-1",
            "program_id": "p1",
            "notes": "Allergic to peanuts",
        }

    @pytest.mark.asyncio
    async def test_create_player_without_id_raises(self, registration_api):
        player = PlayerDetails(first_name="Ada", last_name="Lovelace", email="ada@example.com")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(200, {"player": {}})
            )

            with pytest.raises(RegistrationServiceException, match="player"):
                await registration_api.create_player(player)


class TestPaymentApiClient:
    """Test payment endpoints."""

    @pytest.mark.asyncio
    async def test_create_intent(self, payment_api):
        request = PaymentRequest(amount=60, registration_id="R123", program_name="Soccer")

        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(
                return_value=mock_response(
                    200, {"client_secret": "secret_abc", "payment_intent_id": "pi_123"}
                )
            )
            mock_client.return_value.__aenter__.return_value.post = post

            handle = await payment_api.create_intent(request)

        assert handle.client_secret == "secret_abc"
        assert handle.payment_intent_id == "pi_123"
        assert post.call_args.kwargs["json"] == {"amount": 60, "program_registration_id": "R123"}

    @pytest.mark.asyncio
    async def test_create_intent_incomplete_response(self, payment_api):
        request = PaymentRequest(amount=60, registration_id="R123", program_name="Soccer")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(200, {"client_secret": "secret_abc"})
            )

            with pytest.raises(PaymentException, match="initialize payment"):
                await payment_api.create_intent(request)

    @pytest.mark.asyncio
    async def test_confirm_declined(self, payment_api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(402, {"message": "Card declined"})
            )

            with pytest.raises(PaymentException) as exc_info:
                await payment_api.confirm("pi_123", "R123")

        assert exc_info.value.user_message == "Card declined"

    @pytest.mark.asyncio
    async def test_confirm_success(self, payment_api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(
                    200, {"payment": {"amount": 60, "status": "succeeded"}, "message": "Thanks"}
                )
            )

            body = await payment_api.confirm("pi_123", "R123")

        assert body["payment"]["amount"] == 60
        assert body["payment"]["status"] == "succeeded"
        assert body["message"] == "Thanks"

    @pytest.mark.asyncio
    async def test_confirm_with_malformed_payment_record(self, payment_api):
        """Test a non-object payment record is reported as a payment failure."""
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(200, {"payment": "ok"})
            )

            with pytest.raises(PaymentException) as exc_info:
                await payment_api.confirm("pi_123", "R123")

        assert exc_info.value.user_message == "Payment confirmation failed"


class TestFilterOpenPrograms:
    """Test the open registration window filter."""

    NOW = datetime(2025, 3, 15, 12, 0, tzinfo=UTC)

    def program(self, **overrides):
        data = {
            "id": "p1",
            "name": "Spring Soccer",
            "description": "Outdoor league",
            "season": "Spring 2025",
            "registration_open_date": "2025-03-01",
            "registration_close_date": "2025-03-31",
        }
        data.update(overrides)
        return Program.model_validate(data)

    def test_open_program_is_kept(self):
        assert len(filter_open_programs([self.program()], now=self.NOW)) == 1

    def test_closed_and_inactive_programs_are_dropped(self):
        programs = [
            self.program(id="closed", registration_close_date="2025-03-10"),
            self.program(id="future", registration_open_date="2025-04-01"),
            self.program(id="inactive", is_active=False),
            self.program(id="undated", registration_open_date=None),
        ]

        assert filter_open_programs(programs, now=self.NOW) == []

    def test_search_and_season(self):
        programs = [
            self.program(),
            self.program(id="p2", name="Summer Swim", description="Pool", season="Summer 2025"),
        ]

        by_search = filter_open_programs(programs, now=self.NOW, search="OUTDOOR")
        by_season = filter_open_programs(programs, now=self.NOW, season="Summer 2025")

        assert [p.id for p in by_search] == ["p1"]
        assert [p.id for p in by_season] == ["p2"]
