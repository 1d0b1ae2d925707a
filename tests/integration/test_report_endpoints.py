"""Integration tests for report endpoints."""
import pytest


async def login(app_client, email, password="password123"):
    """Register a user and return auth headers."""
    await app_client.post(
        "/auth/register",
        json={"email": email, "password": password},
    )
    login_response = await app_client.post(
        "/auth/login",
        json={"email": email, "password": password},
    )
    return {"Authorization": f"Bearer {login_response.json()['access_token']}"}


async def log_entry(app_client, headers, project_id, start, end):
    response = await app_client.post(
        "/timers/entries",
        json={"project_id": project_id, "started_at": start, "ended_at": end},
        headers=headers,
    )
    assert response.status_code == 201


async def setup_team(app_client):
    """Admin and a plain member logging time on one project."""
    admin = await login(app_client, "lead@example.com")
    member = await login(app_client, "dev@example.com")

    organization_id = (await app_client.post(
        "/organizations", json={"name": "Acme"}, headers=admin
    )).json()["id"]
    project_id = (await app_client.post(
        f"/organizations/{organization_id}/projects", json={"name": "Website"}, headers=admin
    )).json()["id"]
    await app_client.post(
        f"/organizations/{organization_id}/members",
        json={"email": "dev@example.com"},
        headers=admin,
    )

    await log_entry(app_client, admin, project_id, "2025-06-16T09:00:00", "2025-06-16T11:00:00")
    await log_entry(app_client, member, project_id, "2025-06-16T13:00:00", "2025-06-16T13:45:00")
    await log_entry(app_client, member, project_id, "2025-06-17T08:00:00", "2025-06-17T08:30:00")
    return admin, member, organization_id, project_id


CUSTOM_JUNE = {"preset": "custom", "start": "2025-06-01T00:00:00", "end": "2025-06-30T00:00:00"}


@pytest.mark.asyncio
class TestReports:
    """Tests for the summary endpoints."""

    async def test_daily_summary_own_entries(self, app_client):
        """Test an unscoped daily report shows only the caller's days."""
        _, member, _, _ = await setup_team(app_client)

        response = await app_client.get("/reports/daily", params=CUSTOM_JUNE, headers=member)

        assert response.status_code == 200
        data = response.json()
        assert [day["date"] for day in data["days"]] == ["2025-06-17", "2025-06-16"]
        assert data["total_minutes"] == 75
        assert data["total_display"] == "1h15m"
        assert data["days"][0]["entries"][0]["project"]["name"] == "Website"

    async def test_custom_range_end_day_inclusive(self, app_client):
        """Test a one-day custom range covers that whole day."""
        _, member, _, _ = await setup_team(app_client)

        response = await app_client.get(
            "/reports/daily",
            params={"preset": "custom", "start": "2025-06-16T00:00:00", "end": "2025-06-16T00:00:00"},
            headers=member,
        )

        assert response.json()["total_minutes"] == 45

    async def test_user_summary_needs_view_all(self, app_client):
        """Test a plain user cannot read the whole organization."""
        _, member, organization_id, _ = await setup_team(app_client)

        response = await app_client.get(
            "/reports/users",
            params={"organization_id": organization_id},
            headers=member,
        )

        assert response.status_code == 403

    async def test_user_summary_for_admin(self, app_client):
        """Test an admin sees every member's totals, largest first."""
        admin, _, organization_id, _ = await setup_team(app_client)

        response = await app_client.get(
            "/reports/users",
            params={"organization_id": organization_id, **CUSTOM_JUNE},
            headers=admin,
        )

        assert response.status_code == 200
        users = response.json()["users"]
        assert [(user["user_email"], user["total_minutes"]) for user in users] == [
            ("lead@example.com", 120),
            ("dev@example.com", 75),
        ]
        assert users[1]["entry_count"] == 2

    async def test_project_summary_active_only(self, app_client):
        """Test finished projects drop out of the active project view."""
        admin, _, organization_id, project_id = await setup_team(app_client)
        params = {"organization_id": organization_id, **CUSTOM_JUNE}

        response = await app_client.get("/reports/projects", params=params, headers=admin)
        assert response.json()["projects"][0]["total_minutes"] == 195

        await app_client.post(f"/projects/{project_id}/finish", headers=admin)
        response = await app_client.get(
            "/reports/projects",
            params={**params, "active_only": "true"},
            headers=admin,
        )

        assert response.json()["projects"] == []

    async def test_other_user_without_organization(self, app_client):
        """Test reading another user's entries outside an organization is denied."""
        admin, _, _, _ = await setup_team(app_client)

        response = await app_client.get(
            "/reports/daily",
            params={"user_id": "507f1f77bcf86cd799439011"},
            headers=admin,
        )

        assert response.status_code == 403
        assert response.json()["code"] == "organization_scope_required"

    async def test_custom_without_start(self, app_client):
        """Test the custom preset without a start returns 422."""
        admin = await login(app_client, "nostart@example.com")

        response = await app_client.get("/reports/daily", params={"preset": "custom"}, headers=admin)

        assert response.status_code == 422

    async def test_bounds_without_custom_preset(self, app_client):
        """Test start/end with another preset are refused instead of ignored."""
        admin = await login(app_client, "bounds@example.com")

        response = await app_client.get(
            "/reports/daily",
            params={"preset": "last7days", "start": "2025-06-01T00:00:00"},
            headers=admin,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "range_requires_custom_preset"

    async def test_dashboard_shape(self, app_client):
        """Test the dashboard returns every period block."""
        admin, _, _, _ = await setup_team(app_client)

        response = await app_client.get("/reports/dashboard", headers=admin)

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"today", "this_week", "current_month", "active_projects", "active_organizations"}
        assert data["today"]["trend"] in {"positive", "negative", "neutral"}
        assert data["active_projects"] == 1

    async def test_organization_projects(self, app_client):
        """Test the caller's projects are grouped per organization."""
        _, member, organization_id, _ = await setup_team(app_client)

        response = await app_client.get("/reports/organizations", headers=member)

        assert response.status_code == 200
        groups = response.json()
        assert groups[0]["organization_id"] == organization_id
        assert groups[0]["projects"][0]["total_minutes"] == 75
