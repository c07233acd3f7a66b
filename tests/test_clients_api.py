"""Tests for the admin client endpoints."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.models import Activity, ActivityType
from tests.conftest import ADMIN_EMAIL

CLIENTS_URL = "/api/v1/crm/clients"
LEADS_URL = "/api/v1/crm/leads"
DEALS_URL = "/api/v1/crm/deals"


async def create_client(async_client: AsyncClient, headers: dict[str, str], **fields: object) -> dict:
    """Create a client through the API and return its JSON."""
    body = {"full_name": "Carol Client", **fields}
    response = await async_client.post(CLIENTS_URL, json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateClient:
    """Tests for POST /crm/clients."""

    @pytest.mark.asyncio
    async def test_create_client(
        self, async_client: AsyncClient, admin_headers: dict[str, str], db_session: AsyncSession
    ) -> None:
        """Test that a client is created active with a client_created activity."""
        client = await create_client(
            async_client,
            admin_headers,
            email="carol@example.com",
            address="1 Main St",
            preferred_contact="text",
        )

        assert client["status"] == "active"
        assert client["preferred_contact"] == "text"
        assert client["source_lead_id"] is None

        activity = (await db_session.execute(select(Activity))).scalar_one()
        assert activity.type == ActivityType.CLIENT_CREATED
        assert str(activity.client_id) == client["id"]
        assert activity.performed_by == ADMIN_EMAIL
        assert activity.description == "Client created"

    @pytest.mark.asyncio
    async def test_convert_lead(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that creating a client from a lead links the lead to the new client."""
        lead = (
            await async_client.post(LEADS_URL, json={"full_name": "Dan Prospect"}, headers=admin_headers)
        ).json()

        client = await create_client(async_client, admin_headers, full_name="Dan Prospect", source_lead_id=lead["id"])

        assert client["source_lead_id"] == lead["id"]
        updated_lead = (await async_client.get(f"{LEADS_URL}/{lead['id']}", headers=admin_headers)).json()
        assert updated_lead["converted_to_client_id"] == client["id"]

    @pytest.mark.asyncio
    async def test_convert_lead_activity_names_lead(
        self, async_client: AsyncClient, admin_headers: dict[str, str], db_session: AsyncSession
    ) -> None:
        """Test that the creation activity mentions the source lead."""
        lead = (
            await async_client.post(LEADS_URL, json={"full_name": "Dan Prospect"}, headers=admin_headers)
        ).json()

        await create_client(async_client, admin_headers, source_lead_id=lead["id"])

        result = await db_session.execute(select(Activity).where(Activity.type == ActivityType.CLIENT_CREATED))
        assert result.scalar_one().description == "Client created from lead Dan Prospect"

    @pytest.mark.asyncio
    async def test_unknown_source_lead(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that converting a lead that does not exist is a 404."""
        response = await async_client.post(
            CLIENTS_URL,
            json={"full_name": "Ghost", "source_lead_id": str(uuid.uuid4())},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Source lead not found."

    @pytest.mark.asyncio
    async def test_invalid_email(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that a malformed email fails schema validation."""
        response = await async_client.post(
            CLIENTS_URL, json={"full_name": "Carol", "email": "nope"}, headers=admin_headers
        )
        assert response.status_code == 422


class TestListAndGetClients:
    """Tests for GET /crm/clients."""

    @pytest.mark.asyncio
    async def test_list_with_status_filter(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that the status filter returns only matching clients."""
        await create_client(async_client, admin_headers, full_name="Active Annie")
        await create_client(async_client, admin_headers, full_name="Past Pete", status="past")

        everyone = (await async_client.get(CLIENTS_URL, headers=admin_headers)).json()
        past = (await async_client.get(CLIENTS_URL, params={"status": "past"}, headers=admin_headers)).json()

        assert everyone["total"] == 2
        assert [client["full_name"] for client in everyone["clients"]] == ["Active Annie", "Past Pete"]
        assert past["total"] == 1
        assert past["clients"][0]["full_name"] == "Past Pete"

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that an unknown client status filter is rejected."""
        response = await async_client.get(CLIENTS_URL, params={"status": "vip"}, headers=admin_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_missing_client(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that an unknown id is a 404."""
        response = await async_client.get(f"{CLIENTS_URL}/{uuid.uuid4()}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Client not found."


class TestUpdateClient:
    """Tests for PUT /crm/clients/{id}."""

    @pytest.mark.asyncio
    async def test_partial_update(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that only supplied fields change and preferred contact can be cleared."""
        client = await create_client(async_client, admin_headers, phone="555-0100", preferred_contact="phone")

        response = await async_client.put(
            f"{CLIENTS_URL}/{client['id']}",
            json={"status": "past", "preferred_contact": None},
            headers=admin_headers,
        )

        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "past"
        assert data["preferred_contact"] is None
        assert data["phone"] == "555-0100"


class TestDeleteClient:
    """Tests for DELETE /crm/clients/{id}."""

    @pytest.mark.asyncio
    async def test_delete_client_without_deals(
        self, async_client: AsyncClient, admin_headers: dict[str, str], db_session: AsyncSession
    ) -> None:
        """Test that a client without deals is deleted with its activities."""
        client = await create_client(async_client, admin_headers)

        response = await async_client.delete(f"{CLIENTS_URL}/{client['id']}", headers=admin_headers)

        assert response.status_code == 204
        assert (await async_client.get(f"{CLIENTS_URL}/{client['id']}", headers=admin_headers)).status_code == 404
        assert list((await db_session.execute(select(Activity))).scalars().all()) == []

    @pytest.mark.asyncio
    async def test_delete_client_with_deals_conflicts(
        self, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        """Test that a client referenced by deals cannot be deleted."""
        client = await create_client(async_client, admin_headers)
        await async_client.post(
            DEALS_URL, json={"title": "Deck rebuild", "client_id": client["id"]}, headers=admin_headers
        )

        response = await async_client.delete(f"{CLIENTS_URL}/{client['id']}", headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["detail"].startswith("Client has 1 deal(s).")
        assert (await async_client.get(f"{CLIENTS_URL}/{client['id']}", headers=admin_headers)).status_code == 200
