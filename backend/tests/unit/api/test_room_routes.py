"""
Tests for the room routes.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from app.core.security import verify_password
from app.db.models import Room, RoomCode, Song
from app.utils.datetime_helper import make_naive, utc_now

from conftest import TEST_PASSWORD


def create_room(client, headers, name="Friday Party", password=TEST_PASSWORD, **extra):
    return client.post(
        "/api/rooms/", json={"name": name, "password": password, **extra}, headers=headers
    )


class TestCreateRoom:
    def test_create_room(self, client, db_session, test_user, auth_headers):
        response = create_room(client, auth_headers, name="My Party  Room!")

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "My Party  Room!"
        assert data["slug"] == "my-party-room"
        assert data["market"] == "CH"
        assert data["is_active"] is True
        assert data["has_playlist"] is False

        room = db_session.query(Room).one()
        assert room.user_id == test_user.id
        assert verify_password(TEST_PASSWORD, room.password_hash)

    def test_requires_authentication(self, client):
        assert create_room(client, {}).status_code == 401

    def test_name_and_password_required(self, client, auth_headers):
        assert create_room(client, auth_headers, name=" ").status_code == 400
        assert create_room(client, auth_headers, password="").status_code == 400

    def test_duplicate_name_for_same_user(self, client, auth_headers):
        assert create_room(client, auth_headers).status_code == 201
        assert create_room(client, auth_headers).status_code == 409

    def test_slug_collision_gets_owner_suffix(
        self, client, test_user, other_user, auth_headers, other_headers
    ):
        first = create_room(client, auth_headers).json()
        second = create_room(client, other_headers).json()

        assert first["slug"] == "friday-party"
        assert second["slug"] == f"friday-party-{str(other_user.id)[:8]}"

    def test_repeated_slug_collisions_get_a_counter(self, client, test_user, auth_headers):
        slugs = [
            create_room(client, auth_headers, name=name).json()["slug"]
            for name in ("Party", "Party!", "Party?")
        ]

        suffix = str(test_user.id)[:8]
        assert slugs == ["party", f"party-{suffix}", f"party-{suffix}-2"]

    def test_slug_claimed_concurrently_is_conflict(
        self, client, db_session, test_room, auth_headers
    ):
        with patch("app.api.routes.rooms.allocate_slug", return_value=test_room.slug):
            response = create_room(client, auth_headers, name="Another Party")

        assert response.status_code == 409
        assert db_session.query(Room).count() == 1

    def test_name_without_slug_characters(self, client, auth_headers):
        assert create_room(client, auth_headers, name="!!!").status_code == 400

    def test_room_limit(self, client, auth_headers):
        for i in range(10):
            assert create_room(client, auth_headers, name=f"Room {i}").status_code == 201

        response = create_room(client, auth_headers, name="Room 10")
        assert response.status_code == 400
        assert "maximum" in response.json()["detail"]

    def test_invalid_market(self, client, auth_headers):
        assert create_room(client, auth_headers, market="Switzerland").status_code == 400


class TestOwnerRoutes:
    def test_list_rooms_only_returns_own(
        self, client, test_room, other_headers, auth_headers
    ):
        create_room(client, other_headers, name="Other Room")

        response = client.get("/api/rooms/", headers=auth_headers)

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [str(test_room.id)]

    def test_get_room(self, client, test_room, auth_headers):
        response = client.get(f"/api/rooms/{test_room.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["slug"] == "friday-party"
        assert response.json()["spotify_playlist_id"] is None

    def test_get_room_of_other_user_is_forbidden(self, client, test_room, other_headers):
        response = client.get(f"/api/rooms/{test_room.id}", headers=other_headers)
        assert response.status_code == 403

    def test_get_unknown_room(self, client, auth_headers):
        response = client.get(
            "/api/rooms/00000000-0000-0000-0000-000000000000", headers=auth_headers
        )
        assert response.status_code == 404

    def test_update_room(self, client, test_room, auth_headers):
        response = client.put(
            f"/api/rooms/{test_room.id}",
            json={
                "name": "Saturday Night",
                "is_active": False,
                "spotify_playlist_id": "pl42",
                "market": "fr",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Saturday Night"
        assert data["slug"] == "saturday-night"
        assert data["is_active"] is False
        assert data["spotify_playlist_id"] == "pl42"
        assert data["has_playlist"] is True
        assert data["market"] == "FR"

    def test_update_room_duplicate_name(self, client, test_room, auth_headers):
        create_room(client, auth_headers, name="Taken")

        response = client.put(
            f"/api/rooms/{test_room.id}", json={"name": "Taken"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_update_room_of_other_user(self, client, test_room, other_headers):
        response = client.put(
            f"/api/rooms/{test_room.id}", json={"is_active": False}, headers=other_headers
        )
        assert response.status_code == 403

    def test_change_password(self, client, db_session, test_room, auth_headers):
        response = client.put(
            f"/api/rooms/{test_room.id}/password",
            json={"password": "new-secret", "password_confirm": "new-secret"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        db_session.refresh(test_room)
        assert verify_password("new-secret", test_room.password_hash)

    def test_change_password_mismatch(self, client, test_room, auth_headers):
        response = client.put(
            f"/api/rooms/{test_room.id}/password",
            json={"password": "new-secret", "password_confirm": "other"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_delete_room_removes_songs(self, client, db_session, test_room, auth_headers):
        db_session.add(
            Song(room_id=test_room.id, spotify_id="abc123", title="T", artist="A")
        )
        db_session.commit()

        response = client.delete(f"/api/rooms/{test_room.id}", headers=auth_headers)

        assert response.status_code == 200
        assert db_session.query(Room).count() == 0
        assert db_session.query(Song).count() == 0

    def test_delete_room_of_other_user(self, client, test_room, other_headers):
        response = client.delete(f"/api/rooms/{test_room.id}", headers=other_headers)
        assert response.status_code == 403


class TestSlugLookup:
    def test_correct_password(self, client, test_room):
        response = client.post(
            "/api/rooms/slug/friday-party", json={"password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        assert response.json()["id"] == str(test_room.id)
        assert "spotify_playlist_id" not in response.json()

    def test_wrong_password(self, client, test_room):
        response = client.post("/api/rooms/slug/friday-party", json={"password": "nope"})
        assert response.status_code == 401

    def test_missing_password(self, client, test_room):
        response = client.post("/api/rooms/slug/friday-party", json={})
        assert response.status_code == 400

    def test_unknown_slug(self, client):
        response = client.post("/api/rooms/slug/unknown", json={"password": "x"})
        assert response.status_code == 404


class TestRoomCodes:
    def issue(self, client, room, headers, password=TEST_PASSWORD, hours=None):
        body = {"password": password}
        if hours is not None:
            body["expires_in_hours"] = hours
        return client.post(f"/api/rooms/{room.id}/codes", json=body, headers=headers)

    def test_issue_code(self, client, test_room, auth_headers):
        response = self.issue(client, test_room, auth_headers, hours=3)

        assert response.status_code == 201
        data = response.json()
        assert len(data["code"]) == 8
        assert data["room_id"] == str(test_room.id)

    def test_issue_code_requires_room_password(self, client, test_room, auth_headers):
        response = self.issue(client, test_room, auth_headers, password="wrong")
        assert response.status_code == 401

    @pytest.mark.parametrize("hours", [0, 25])
    def test_expiry_bounds(self, client, test_room, auth_headers, hours):
        response = self.issue(client, test_room, auth_headers, hours=hours)
        assert response.status_code == 400

    def test_issue_code_for_other_users_room(self, client, test_room, other_headers):
        response = self.issue(client, test_room, other_headers)
        assert response.status_code == 403

    def test_redeem_code(self, client, test_room, auth_headers):
        code = self.issue(client, test_room, auth_headers).json()["code"]

        response = client.get(f"/api/rooms/code/{code.lower()}")

        assert response.status_code == 200
        assert response.json()["id"] == str(test_room.id)

    def test_redeem_expired_code(self, client, db_session, test_room):
        db_session.add(
            RoomCode(
                code="EXPIRED2",
                room_id=test_room.id,
                expires_at=make_naive(utc_now() - timedelta(minutes=1)),
            )
        )
        db_session.commit()

        assert client.get("/api/rooms/code/EXPIRED2").status_code == 404
        assert client.get("/api/rooms/code/UNKNOWN1").status_code == 404

    def test_list_and_delete_codes(self, client, db_session, test_room, auth_headers):
        live = self.issue(client, test_room, auth_headers).json()["code"]
        db_session.add(
            RoomCode(
                code="EXPIRED2",
                room_id=test_room.id,
                expires_at=make_naive(utc_now() - timedelta(minutes=1)),
            )
        )
        db_session.commit()

        listed = client.get(f"/api/rooms/{test_room.id}/codes", headers=auth_headers)
        assert [c["code"] for c in listed.json()] == [live]

        response = client.delete(
            f"/api/rooms/{test_room.id}/codes/{live}", headers=auth_headers
        )
        assert response.status_code == 200
        assert client.get(f"/api/rooms/code/{live}").status_code == 404

        response = client.delete(
            f"/api/rooms/{test_room.id}/codes/{live}", headers=auth_headers
        )
        assert response.status_code == 404
