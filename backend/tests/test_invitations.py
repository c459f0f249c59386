"""
Invitation lifecycle tests.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskflow.models.organization_invitation import InvitationStatus, OrganizationInvitation
from taskflow.services import invitation as invitation_service
from conftest import PASSWORD


@pytest.fixture
def sent_emails(monkeypatch: pytest.MonkeyPatch) -> list:
    """Capture invitation emails instead of talking to SMTP."""
    sent = []

    def fake_send(**kwargs):
        sent.append(kwargs)
        return True

    monkeypatch.setattr(invitation_service, "send_invitation_email", fake_send)
    return sent


def invite(client: TestClient, headers: dict, email: str = "bob@x.com", role: str = "manager"):
    return client.post("/api/invitations", json={"email": email, "role": role}, headers=headers)


def expire(db: Session, invitation_id: int) -> None:
    db.query(OrganizationInvitation).filter(OrganizationInvitation.id == invitation_id).update(
        {OrganizationInvitation.expires_at: datetime(2020, 1, 1, tzinfo=timezone.utc)},
        synchronize_session=False,
    )
    db.commit()


class TestIssueAndRedeem:
    """Test the happy path from invitation to membership."""

    def test_invite_validate_register(self, client: TestClient, acme_admin: dict, sent_emails: list):
        response = invite(client, acme_admin["headers"])
        assert response.status_code == 201
        invitation = response.json()
        assert invitation["status"] == "pending"
        assert invitation["email"] == "bob@x.com"
        assert len(invitation["token"]) == 64

        assert len(sent_emails) == 1
        assert sent_emails[0]["email"] == "bob@x.com"
        assert sent_emails[0]["organization_name"] == "Acme"
        assert sent_emails[0]["token"] == invitation["token"]
        assert sent_emails[0]["resent"] is False

        response = client.get(f"/api/invitations/validate/{invitation['token']}")
        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "organization": {"id": acme_admin["user"]["organization_id"], "name": "Acme"},
            "role": "manager",
        }

        response = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": invitation["token"]
        })
        assert response.status_code == 201
        bob = response.json()["user"]
        assert bob["role"] == "manager"
        assert bob["organization_id"] == acme_admin["user"]["organization_id"]

        pending = client.get("/api/invitations/pending", headers=acme_admin["headers"])
        assert pending.json() == []

        response = client.get(f"/api/invitations/validate/{invitation['token']}")
        assert response.json() == {"valid": False, "organization": None, "role": None}

    def test_token_redeems_only_once(self, client: TestClient, acme_admin: dict, sent_emails: list):
        token = invite(client, acme_admin["headers"]).json()["token"]
        first = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": token
        })
        assert first.status_code == 201

        again = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": token
        })
        assert again.status_code == 409
        assert again.json()["code"] == "DUPLICATE_CREDENTIAL"

    def test_email_matched_case_insensitively(self, client: TestClient, acme_admin: dict, sent_emails: list):
        token = invite(client, acme_admin["headers"], email="Bob@X.com").json()["token"]
        response = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": token
        })
        assert response.status_code == 201

    def test_unknown_token(self, client: TestClient):
        response = client.get("/api/invitations/validate/not-a-token")
        assert response.json()["valid"] is False

        response = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": "not-a-token"
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OR_EXPIRED_INVITATION"


class TestInvitationRules:
    """Test uniqueness, email binding, expiry and permissions."""

    def test_duplicate_pending_invitation(self, client: TestClient, acme_admin: dict, sent_emails: list):
        assert invite(client, acme_admin["headers"]).status_code == 201

        response = invite(client, acme_admin["headers"], email="BOB@x.com", role="member")
        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_INVITATION"

    def test_same_email_in_another_organization(self, client: TestClient, acme_admin: dict, globex_admin: dict, sent_emails: list):
        assert invite(client, acme_admin["headers"]).status_code == 201
        assert invite(client, globex_admin["headers"]).status_code == 201

    def test_email_mismatch_leaves_invitation_pending(self, client: TestClient, acme_admin: dict, sent_emails: list):
        token = invite(client, acme_admin["headers"]).json()["token"]

        response = client.post("/api/auth/register", json={
            "name": "Carol", "email": "carol@x.com", "password": PASSWORD, "invite_token": token
        })
        assert response.status_code == 400
        assert response.json()["code"] == "EMAIL_MISMATCH"

        login = client.post("/api/auth/login", json={"email": "carol@x.com", "password": PASSWORD})
        assert login.status_code == 401
        assert client.get(f"/api/invitations/validate/{token}").json()["valid"] is True

    def test_expired_invitation(self, client: TestClient, db: Session, acme_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()
        expire(db, invitation["id"])

        assert client.get(f"/api/invitations/validate/{invitation['token']}").json()["valid"] is False
        response = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": invitation["token"]
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OR_EXPIRED_INVITATION"

        # Still pending, so it keeps blocking a fresh invitation until resent or cancelled
        assert invite(client, acme_admin["headers"]).status_code == 409

    def test_member_cannot_invite(self, client: TestClient, acme_member: dict, sent_emails: list):
        response = invite(client, acme_member["headers"])
        assert response.status_code == 403
        assert response.json()["code"] == "ROLE_DENIED"
        assert sent_emails == []

    def test_invalid_role(self, client: TestClient, acme_admin: dict, sent_emails: list):
        response = invite(client, acme_admin["headers"], role="owner")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_notification_failure_does_not_fail_issuance(self, client: TestClient, acme_admin: dict, monkeypatch: pytest.MonkeyPatch):
        def broken(**kwargs):
            raise RuntimeError("SMTP down")

        monkeypatch.setattr(invitation_service, "send_invitation_email", broken)

        response = invite(client, acme_admin["headers"])
        assert response.status_code == 201
        pending = client.get("/api/invitations/pending", headers=acme_admin["headers"]).json()
        assert [i["email"] for i in pending] == ["bob@x.com"]


class TestCancelAndResend:
    """Test invitation management endpoints."""

    def test_cancel(self, client: TestClient, acme_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()

        response = client.delete(f"/api/invitations/{invitation['id']}", headers=acme_admin["headers"])
        assert response.status_code == 200
        assert client.get("/api/invitations/pending", headers=acme_admin["headers"]).json() == []
        assert client.get(f"/api/invitations/validate/{invitation['token']}").json()["valid"] is False

        response = client.delete(f"/api/invitations/{invitation['id']}", headers=acme_admin["headers"])
        assert response.status_code == 404

        # The address can be invited again once the pending invitation is gone
        assert invite(client, acme_admin["headers"]).status_code == 201

    def test_cancel_foreign_invitation(self, client: TestClient, acme_admin: dict, globex_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()
        response = client.delete(f"/api/invitations/{invitation['id']}", headers=globex_admin["headers"])
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_resend_revives_expired_invitation(self, client: TestClient, db: Session, acme_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()
        expire(db, invitation["id"])

        response = client.post(f"/api/invitations/{invitation['id']}/resend", headers=acme_admin["headers"])
        assert response.status_code == 200
        assert not response.json()["expires_at"].startswith("2020")

        assert client.get(f"/api/invitations/validate/{invitation['token']}").json()["valid"] is True
        assert len(sent_emails) == 2
        assert sent_emails[1]["resent"] is True
        assert sent_emails[1]["token"] == invitation["token"]

    def test_resend_accepted_invitation(self, client: TestClient, db: Session, acme_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()
        client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": invitation["token"]
        })

        response = client.post(f"/api/invitations/{invitation['id']}/resend", headers=acme_admin["headers"])
        assert response.status_code == 404

        stored = db.query(OrganizationInvitation).filter(OrganizationInvitation.id == invitation["id"]).one()
        assert stored.status == InvitationStatus.ACCEPTED


class TestRedemptionRace:
    """Test that an invitation is redeemed at most once and never burned by a failed registration."""

    def test_mark_accepted_succeeds_once(self, client: TestClient, db: Session, acme_admin: dict, sent_emails: list):
        invitation = invite(client, acme_admin["headers"]).json()

        assert invitation_service.mark_accepted(db, invitation["id"]) is True
        assert invitation_service.mark_accepted(db, invitation["id"]) is False
        db.commit()

        stored = db.query(OrganizationInvitation).filter(OrganizationInvitation.id == invitation["id"]).one()
        assert stored.status == InvitationStatus.ACCEPTED
        assert stored.pending_email is None

    def test_concurrent_redemption_loses(self, client: TestClient, acme_admin: dict, sent_emails: list, monkeypatch: pytest.MonkeyPatch):
        """Another registration accepts the invitation between the check and the write."""
        from taskflow.services import identity

        real_claim = identity.claim_invitation

        def claim_then_lose_race(db, token, email, now=None):
            invitation = real_claim(db, token, email, now)
            invitation_service.mark_accepted(db, invitation.id)
            return invitation

        monkeypatch.setattr(identity, "claim_invitation", claim_then_lose_race)

        token = invite(client, acme_admin["headers"]).json()["token"]
        response = client.post("/api/auth/register", json={
            "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": token
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OR_EXPIRED_INVITATION"

        login = client.post("/api/auth/login", json={"email": "bob@x.com", "password": PASSWORD})
        assert login.status_code == 401
        members = client.get("/api/organizations/members", headers=acme_admin["headers"]).json()
        assert [m["email"] for m in members] == ["alice@acme.com"]

    def test_failed_registration_keeps_invitation_pending(self, client: TestClient, acme_admin: dict, sent_emails: list, monkeypatch: pytest.MonkeyPatch):
        """A failure after the token check rolls back without consuming the invitation."""
        from taskflow.services import identity

        def broken_hash(password):
            raise RuntimeError("hashing backend unavailable")

        monkeypatch.setattr(identity, "hash_password", broken_hash)

        token = invite(client, acme_admin["headers"]).json()["token"]
        with pytest.raises(RuntimeError):
            client.post("/api/auth/register", json={
                "name": "Bob", "email": "bob@x.com", "password": PASSWORD, "invite_token": token
            })

        monkeypatch.undo()
        assert client.get(f"/api/invitations/validate/{token}").json()["valid"] is True
        pending = client.get("/api/invitations/pending", headers=acme_admin["headers"]).json()
        assert [i["email"] for i in pending] == ["bob@x.com"]
