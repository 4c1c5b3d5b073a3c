"""
Tests for public storefront bundle routes.
"""

import pytest
from httpx import AsyncClient

from app.bundles.models import BundleStatus
from tests.utils.factories import create_test_bundle


class TestStorefrontListBundles:
    """Tests for GET /api/v1/bundles"""

    @pytest.mark.asyncio
    async def test_only_active_bundles_are_listed(
        self, test_client: AsyncClient, draft_bundle, active_bundle, db_session
    ):
        create_test_bundle(db_session, status=BundleStatus.ARCHIVED)

        response = await test_client.get("/api/v1/bundles")

        assert response.status_code == 200
        data = response.json()
        assert data["meta"]["total"] == 1
        bundle = data["data"][0]
        assert bundle["id"] == str(active_bundle.id)
        assert bundle["effective_price"] == 4400
        assert bundle["is_available"] is True

    @pytest.mark.asyncio
    async def test_bundle_broken_on_read_is_unavailable(
        self, test_client: AsyncClient, catalog, active_bundle
    ):
        catalog.remove("A")

        response = await test_client.get("/api/v1/bundles")

        bundle = response.json()["data"][0]
        assert bundle["is_available"] is False
        assert bundle["bundle_virtual_stock"] == 0


class TestStorefrontGetBundle:
    """Tests for GET /api/v1/bundles/{id}"""

    @pytest.mark.asyncio
    async def test_get_active_bundle(self, test_client: AsyncClient, active_bundle):
        response = await test_client.get(f"/api/v1/bundles/{active_bundle.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["component_total"] == 5500
        assert data["total_savings"] == 1100
        assert data["bundle_virtual_stock"] == 4

    @pytest.mark.asyncio
    async def test_draft_is_not_found(self, test_client: AsyncClient, draft_bundle):
        response = await test_client.get(f"/api/v1/bundles/{draft_bundle.id}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_outage_serves_stale_bundle(
        self, test_client: AsyncClient, catalog, active_bundle
    ):
        catalog.fail_with_outage()

        response = await test_client.get(f"/api/v1/bundles/{active_bundle.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["availability_stale"] is True
        assert data["is_available"] is True
