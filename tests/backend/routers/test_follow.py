"""Tests for the follow router."""

from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from backend.models.user import follows

MISSING_ID = "f" * 32


class TestFollow:
    def test__follow_user(self, test_client: TestClient, create_user, auth_headers, test_db_session):
        alice, alice_token = create_user(email="alice@example.com", name="Alice")
        bob, _ = create_user(email="bob@example.com", name="Bob")

        response = test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 200
        assert response.json() == {"message": "You are now following Bob."}
        test_db_session.refresh(alice)
        assert [user.id for user in alice.following] == [bob.id]

    def test__follow_twice(self, test_client: TestClient, create_user, auth_headers, test_db_session):
        _, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com")
        test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        response = test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "You are already following this user."
        assert test_db_session.execute(select(func.count()).select_from(follows)).scalar_one() == 1

    def test__concurrent_duplicate_follow_is_400(
        self, test_client: TestClient, create_user, auth_headers, test_db_session
    ):
        _, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com")
        duplicate_key = IntegrityError("INSERT INTO follows", {}, Exception("UNIQUE constraint failed"))

        with patch.object(test_db_session, "commit", side_effect=duplicate_key):
            response = test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "You are already following this user."
        assert test_db_session.execute(select(func.count()).select_from(follows)).scalar_one() == 0

    def test__follow_self(self, test_client: TestClient, create_user, auth_headers):
        alice, alice_token = create_user(email="alice@example.com")

        response = test_client.post(f"/api/follow/{alice.id}", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot follow yourself."

    def test__follow_missing_user(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")

        response = test_client.post(f"/api/follow/{MISSING_ID}", headers=auth_headers(alice_token))

        assert response.status_code == 404
        assert response.json()["detail"] == "User not found."

    def test__follow_deactivated_user(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com", active=False)

        response = test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 404

    def test__follow_malformed_id(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")

        response = test_client.post("/api/follow/not-an-id", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid user ID."

    def test__follow_requires_token(self, test_client: TestClient, create_user):
        bob, _ = create_user(email="bob@example.com")

        response = test_client.post(f"/api/follow/{bob.id}")

        assert response.status_code == 401


class TestUnfollow:
    def test__unfollow_user(self, test_client: TestClient, create_user, auth_headers, test_db_session):
        alice, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com", name="Bob")
        test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        response = test_client.delete(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 200
        assert response.json() == {"message": "You have unfollowed Bob."}
        test_db_session.refresh(alice)
        assert alice.following == []

    def test__unfollow_when_not_following(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com")

        response = test_client.delete(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "You are not following this user."

    def test__unfollow_self(self, test_client: TestClient, create_user, auth_headers):
        alice, alice_token = create_user(email="alice@example.com")

        response = test_client.delete(f"/api/follow/{alice.id}", headers=auth_headers(alice_token))

        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot unfollow yourself."

    def test__follow_again_after_unfollow(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")
        bob, _ = create_user(email="bob@example.com")
        test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))
        test_client.delete(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        response = test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))

        assert response.status_code == 200


class TestConnectionLists:
    def test__followers_and_following(self, test_client: TestClient, create_user, auth_headers):
        alice, alice_token = create_user(email="alice@example.com", name="Alice")
        bob, bob_token = create_user(email="bob@example.com", name="Bob")
        carol, carol_token = create_user(email="carol@example.com", name="Carol")
        test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(alice_token))
        test_client.post(f"/api/follow/{bob.id}", headers=auth_headers(carol_token))

        followers = test_client.get(f"/api/users/{bob.id}/followers", headers=auth_headers(alice_token))
        following = test_client.get(f"/api/users/{alice.id}/following", headers=auth_headers(bob_token))

        assert followers.status_code == 200
        assert followers.json()["total"] == 2
        assert {user["id"] for user in followers.json()["followers"]} == {alice.id, carol.id}
        assert set(followers.json()["followers"][0]) == {"id", "name", "profilePicture"}

        assert following.status_code == 200
        assert following.json() == {
            "following": [{"id": bob.id, "name": "Bob", "profilePicture": ""}],
            "total": 1,
        }

    def test__empty_lists(self, test_client: TestClient, create_user, auth_headers):
        alice, alice_token = create_user(email="alice@example.com")

        response = test_client.get(f"/api/users/{alice.id}/followers", headers=auth_headers(alice_token))

        assert response.status_code == 200
        assert response.json() == {"followers": [], "total": 0}

    def test__deactivated_users_are_hidden(self, test_client: TestClient, create_user, auth_headers, test_db_session):
        alice, alice_token = create_user(email="alice@example.com")
        bob, bob_token = create_user(email="bob@example.com")
        test_client.post(f"/api/follow/{alice.id}", headers=auth_headers(bob_token))
        bob.active = False
        test_db_session.commit()

        response = test_client.get(f"/api/users/{alice.id}/followers", headers=auth_headers(alice_token))

        assert response.json()["total"] == 0

    def test__private_lists_are_hidden_from_strangers(self, test_client: TestClient, create_user, auth_headers):
        alice, _ = create_user(email="alice@example.com", is_private=True)
        _, bob_token = create_user(email="bob@example.com")

        followers = test_client.get(f"/api/users/{alice.id}/followers", headers=auth_headers(bob_token))
        following = test_client.get(f"/api/users/{alice.id}/following", headers=auth_headers(bob_token))

        assert followers.status_code == 403
        assert followers.json()["detail"] == "This user's followers list is private."
        assert following.status_code == 403
        assert following.json()["detail"] == "This user's following list is private."

    def test__private_lists_are_visible_to_owner_followers_and_admins(
        self, test_client: TestClient, create_user, auth_headers
    ):
        alice, alice_token = create_user(email="alice@example.com", is_private=True)
        _, bob_token = create_user(email="bob@example.com")
        _, admin_token = create_user(email="admin@example.com", role="admin")
        test_client.post(f"/api/follow/{alice.id}", headers=auth_headers(bob_token))

        for token in (alice_token, bob_token, admin_token):
            response = test_client.get(f"/api/users/{alice.id}/followers", headers=auth_headers(token))
            assert response.status_code == 200
            assert response.json()["total"] == 1

    def test__malformed_id(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")

        response = test_client.get("/api/users/not-an-id/followers", headers=auth_headers(alice_token))

        assert response.status_code == 400

    def test__missing_user(self, test_client: TestClient, create_user, auth_headers):
        _, alice_token = create_user(email="alice@example.com")

        response = test_client.get(f"/api/users/{MISSING_ID}/following", headers=auth_headers(alice_token))

        assert response.status_code == 404
