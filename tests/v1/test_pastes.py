# tests/v1/test_pastes.py
"""Tests for the paste and comment endpoints."""

from __future__ import annotations

from fastapi import status
from fastapi.testclient import TestClient

from veilbin.api.v1.dependencies import get_model
from veilbin.services import Model

PASTES_URL = "/api/v1/pastes"


def _create(client: TestClient, envelope: dict) -> dict:
    response = client.post(PASTES_URL, json=envelope)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_create_and_read(client: TestClient, paste_envelope) -> None:
    envelope = paste_envelope(expire="5min")
    created = _create(client, envelope)

    assert created["status"] == 0
    assert created["url"].endswith(f"?{created['id']}")
    assert len(created["deletetoken"]) == 64

    response = client.get(f"{PASTES_URL}/{created['id']}")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["ct"] == envelope["ct"]
    assert body["meta"]["time_to_live"] == 300
    assert "expire_date" not in body["meta"]
    assert body["comment_count"] == 0


def test_create_schedules_purge(client: TestClient, api_model: Model, paste_envelope, mocker) -> None:
    purge = mocker.patch.object(api_model, "purge", return_value=0)
    _create(client, paste_envelope())
    purge.assert_called_once_with()


def test_malformed_envelope(client: TestClient, paste_envelope) -> None:
    envelope = paste_envelope()
    envelope["unexpected"] = True

    response = client.post(PASTES_URL, json=envelope)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Invalid data."


def test_collision(client: TestClient, paste_envelope) -> None:
    envelope = paste_envelope()
    _create(client, envelope)

    response = client.post(PASTES_URL, json=envelope)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "You are unlucky. Try again."


def test_unknown_and_invalid_ids(client: TestClient) -> None:
    missing = client.get(f"{PASTES_URL}/0123456789abcdef")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"] == "Paste does not exist, has expired or has been deleted."

    invalid = client.get(f"{PASTES_URL}/NOT-AN-ID")
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST


def test_burn_after_reading(client: TestClient, paste_envelope) -> None:
    created = _create(client, paste_envelope(burn_after_reading=1))

    assert client.get(f"{PASTES_URL}/{created['id']}").status_code == status.HTTP_200_OK
    assert client.get(f"{PASTES_URL}/{created['id']}").status_code == status.HTTP_404_NOT_FOUND


def test_delete(client: TestClient, paste_envelope) -> None:
    created = _create(client, paste_envelope())
    url = f"{PASTES_URL}/{created['id']}"

    wrong = client.delete(url, params={"deletetoken": "0" * 64})
    assert wrong.status_code == status.HTTP_400_BAD_REQUEST
    assert client.get(url).status_code == status.HTTP_200_OK

    response = client.delete(url, params={"deletetoken": created["deletetoken"]})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": 0, "id": created["id"]}
    assert client.get(url).status_code == status.HTTP_404_NOT_FOUND


def test_comment(client: TestClient, paste_envelope, comment_envelope) -> None:
    created = _create(client, paste_envelope(open_discussion=1))
    paste_id = created["id"]

    response = client.post(f"{PASTES_URL}/{paste_id}/comments", json=comment_envelope(paste_id))
    assert response.status_code == status.HTTP_201_CREATED, response.text
    comment_id = response.json()["id"]
    assert response.json()["url"].endswith(f"?{paste_id}#{comment_id}")

    body = client.get(f"{PASTES_URL}/{paste_id}").json()
    assert body["comment_count"] == 1
    assert body["comments"][0]["id"] == comment_id


def test_comment_on_closed_paste(client: TestClient, paste_envelope, comment_envelope) -> None:
    paste_id = _create(client, paste_envelope())["id"]

    response = client.post(f"{PASTES_URL}/{paste_id}/comments", json=comment_envelope(paste_id))

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_comment_on_missing_paste(client: TestClient, comment_envelope) -> None:
    paste_id = "0123456789abcdef"
    response = client.post(f"{PASTES_URL}/{paste_id}/comments", json=comment_envelope(paste_id))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_traffic_limiter(app, client: TestClient, filesystem_model: Model, paste_envelope, clock) -> None:
    app.dependency_overrides[get_model] = lambda: filesystem_model

    assert client.post(PASTES_URL, json=paste_envelope()).status_code == status.HTTP_201_CREATED
    limited = client.post(PASTES_URL, json=paste_envelope())
    assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert "10 seconds" in limited.json()["detail"]

    clock.advance(11)
    assert client.post(PASTES_URL, json=paste_envelope()).status_code == status.HTTP_201_CREATED
