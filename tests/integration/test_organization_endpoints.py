"""Integration tests for organization, member and project endpoints."""
import pytest


async def login(app_client, email, password="password123"):
    """Register a user and return (auth headers, user id)."""
    await app_client.post(
        "/auth/register",
        json={"email": email, "password": password, "full_name": email.split("@")[0]},
    )
    login_response = await app_client.post(
        "/auth/login",
        json={"email": email, "password": password},
    )
    headers = {"Authorization": f"Bearer {login_response.json()['access_token']}"}
    me = await app_client.get("/auth/me", headers=headers)
    return headers, me.json()["id"]


@pytest.mark.asyncio
class TestOrganizations:
    """Tests for organization CRUD."""

    async def test_create_and_list(self, app_client):
        """Test the creator becomes admin and sees the organization."""
        headers, _ = await login(app_client, "admin@example.com")

        response = await app_client.post("/organizations", json={"name": "Acme"}, headers=headers)
        assert response.status_code == 201
        organization_id = response.json()["id"]

        response = await app_client.get("/organizations", headers=headers)
        assert response.status_code == 200
        assert [(org["id"], org["role"]) for org in response.json()] == [(organization_id, "admin")]

    async def test_empty_name_rejected(self, app_client):
        """Test an empty organization name returns 422."""
        headers, _ = await login(app_client, "empty@example.com")

        response = await app_client.post("/organizations", json={"name": ""}, headers=headers)

        assert response.status_code == 422

    async def test_non_member_cannot_view(self, app_client):
        """Test outsiders get 403 on someone else's organization."""
        admin, _ = await login(app_client, "admin2@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        outsider, _ = await login(app_client, "outsider2@example.com")

        response = await app_client.get(f"/organizations/{organization_id}", headers=outsider)

        assert response.status_code == 403
        assert response.json()["code"] == "not_a_member"

    async def test_permission_flags(self, app_client):
        """Test the permission flags of an admin and an outsider."""
        admin, _ = await login(app_client, "flags@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        outsider, _ = await login(app_client, "noflags@example.com")

        admin_flags = (await app_client.get(
            f"/organizations/{organization_id}/permissions", headers=admin
        )).json()
        outsider_flags = (await app_client.get(
            f"/organizations/{organization_id}/permissions", headers=outsider
        )).json()

        assert all(admin_flags.values())
        assert not any(outsider_flags.values())


@pytest.mark.asyncio
class TestMembers:
    """Tests for membership management."""

    async def test_add_member_and_change_role(self, app_client):
        """Test adding a member and promoting them to manager."""
        admin, _ = await login(app_client, "boss@example.com")
        member, member_id = await login(app_client, "worker@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]

        response = await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "worker@example.com"},
            headers=admin,
        )
        assert response.status_code == 201
        assert response.json()["role"] == "user"

        response = await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "worker@example.com"},
            headers=admin,
        )
        assert response.status_code == 409

        response = await app_client.patch(
            f"/organizations/{organization_id}/members/{member_id}",
            json={"role": "manager"},
            headers=admin,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "manager"

        flags = (await app_client.get(
            f"/organizations/{organization_id}/permissions", headers=member
        )).json()
        assert flags["view_all_time_entries"] is True
        assert flags["manage_users"] is False

        response = await app_client.get(f"/organizations/{organization_id}/members", headers=member)
        assert response.status_code == 200
        assert {row["email"] for row in response.json()} == {"boss@example.com", "worker@example.com"}

    async def test_member_cannot_manage_members(self, app_client):
        """Test a plain user cannot add members."""
        admin, _ = await login(app_client, "boss2@example.com")
        member, _ = await login(app_client, "worker2@example.com")
        await login(app_client, "third@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "worker2@example.com"},
            headers=admin,
        )

        response = await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "third@example.com"},
            headers=member,
        )

        assert response.status_code == 403
        assert response.json()["code"] == "manage_users"

    async def test_last_admin_is_kept(self, app_client):
        """Test the sole admin can neither step down nor leave."""
        admin, admin_id = await login(app_client, "solo@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]

        response = await app_client.patch(
            f"/organizations/{organization_id}/members/{admin_id}",
            json={"role": "user"},
            headers=admin,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "last_admin"

        response = await app_client.delete(
            f"/organizations/{organization_id}/members/{admin_id}", headers=admin
        )
        assert response.status_code == 409
        assert response.json()["code"] == "last_admin"

        await login(app_client, "deputy@example.com")
        await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "deputy@example.com", "role": "admin"},
            headers=admin,
        )
        response = await app_client.delete(
            f"/organizations/{organization_id}/members/{admin_id}", headers=admin
        )
        assert response.status_code == 200


@pytest.mark.asyncio
class TestInvites:
    """Tests for inviting e-mails without an account."""

    async def test_invite_then_register_joins(self, app_client):
        """Test an invited e-mail becomes a member with the invited role on sign-up."""
        admin, _ = await login(app_client, "boss3@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]

        response = await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "Ghost@Example.com", "role": "manager"},
            headers=admin,
        )
        assert response.status_code == 201
        invite = response.json()
        assert invite["email"] == "ghost@example.com"
        assert invite["role"] == "manager"
        assert "user_id" not in invite

        response = await app_client.get(f"/organizations/{organization_id}/invites", headers=admin)
        assert [row["email"] for row in response.json()] == ["ghost@example.com"]

        ghost, ghost_id = await login(app_client, "ghost@example.com")

        organizations = (await app_client.get("/organizations", headers=ghost)).json()
        assert [(org["id"], org["role"]) for org in organizations] == [(organization_id, "manager")]
        members = (await app_client.get(f"/organizations/{organization_id}/members", headers=admin)).json()
        assert ghost_id in {row["user_id"] for row in members}
        response = await app_client.get(f"/organizations/{organization_id}/invites", headers=admin)
        assert response.json() == []

    async def test_invite_twice(self, app_client):
        """Test the same e-mail cannot be invited twice to one organization."""
        admin, _ = await login(app_client, "boss4@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "twice@example.com"},
            headers=admin,
        )

        response = await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "TWICE@example.com"},
            headers=admin,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "already_invited"

    async def test_revoked_invite_is_not_accepted(self, app_client):
        """Test revoking an invite keeps the e-mail out of the organization."""
        admin, _ = await login(app_client, "boss5@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        invite_id = (await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "maybe@example.com"},
            headers=admin,
        )).json()["id"]

        response = await app_client.delete(
            f"/organizations/{organization_id}/invites/{invite_id}", headers=admin
        )
        assert response.status_code == 200
        response = await app_client.delete(
            f"/organizations/{organization_id}/invites/{invite_id}", headers=admin
        )
        assert response.status_code == 404
        assert response.json()["code"] == "invite_not_found"

        maybe, _ = await login(app_client, "maybe@example.com")
        assert (await app_client.get("/organizations", headers=maybe)).json() == []

    async def test_invites_need_manage_users(self, app_client):
        """Test members without manage_users cannot see or revoke invites."""
        admin, _ = await login(app_client, "boss6@example.com")
        member, _ = await login(app_client, "worker6@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "worker6@example.com", "role": "manager"},
            headers=admin,
        )
        invite_id = (await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "later@example.com"},
            headers=admin,
        )).json()["id"]

        response = await app_client.get(f"/organizations/{organization_id}/invites", headers=member)
        assert response.status_code == 403
        assert response.json()["code"] == "manage_users"

        response = await app_client.delete(
            f"/organizations/{organization_id}/invites/{invite_id}", headers=member
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestProjects:
    """Tests for project endpoints."""

    async def test_project_lifecycle(self, app_client):
        """Test create, finish, filter, reopen and delete."""
        admin, _ = await login(app_client, "pm@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]

        for name in ["Beta", "Alpha"]:
            response = await app_client.post(
                f"/organizations/{organization_id}/projects",
                json={"name": name},
                headers=admin,
            )
            assert response.status_code == 201

        projects = (await app_client.get(
            f"/organizations/{organization_id}/projects", headers=admin
        )).json()
        assert [project["name"] for project in projects] == ["Alpha", "Beta"]
        alpha_id = projects[0]["id"]

        response = await app_client.post(f"/projects/{alpha_id}/finish", headers=admin)
        assert response.status_code == 200
        assert response.json()["is_finished"] is True

        active = (await app_client.get(
            f"/organizations/{organization_id}/projects",
            params={"active_only": "true"},
            headers=admin,
        )).json()
        assert [project["name"] for project in active] == ["Beta"]

        response = await app_client.post(f"/projects/{alpha_id}/reopen", headers=admin)
        assert response.json()["is_finished"] is False

        response = await app_client.delete(f"/projects/{alpha_id}", headers=admin)
        assert response.status_code == 200
        response = await app_client.get(f"/projects/{alpha_id}", headers=admin)
        assert response.status_code == 404

    async def test_member_cannot_create_project(self, app_client):
        """Test project creation is admin only."""
        admin, _ = await login(app_client, "pm2@example.com")
        member, _ = await login(app_client, "dev2@example.com")
        organization_id = (await app_client.post(
            "/organizations", json={"name": "Acme"}, headers=admin
        )).json()["id"]
        await app_client.post(
            f"/organizations/{organization_id}/members",
            json={"email": "dev2@example.com", "role": "manager"},
            headers=admin,
        )

        response = await app_client.post(
            f"/organizations/{organization_id}/projects",
            json={"name": "Sneaky"},
            headers=member,
        )

        assert response.status_code == 403
