"""
HTTP tests for the experiences endpoints.
"""

from uuid import uuid4

import pytest

EXPERIENCES = "/api/v1/experiences"

pytestmark = pytest.mark.integration


def experience_payload(profile_id, **overrides):
    payload = {
        "profile_id": str(profile_id),
        "title": "Backend Engineer",
        "company": "Globex",
        "start_date": "2018-01-15",
        "end_date": "2020-06-30",
    }
    payload.update(overrides)
    return payload


async def test_create_and_read(client, auth_headers, owner_profile):
    created = await client.post(
        EXPERIENCES, json=experience_payload(owner_profile.id), headers=auth_headers["owner"]
    )
    assert created.status_code == 201
    experience = created.json()["data"]

    response = await client.get(
        f"{EXPERIENCES}/{experience['id']}", headers=auth_headers["other"]
    )

    assert response.status_code == 200
    assert response.json()["data"]["company"] == "Globex"
    assert response.headers["ETag"]


async def test_reads_require_authentication(client, owner_experience):
    response = await client.get(f"{EXPERIENCES}/{owner_experience.id}")

    assert response.status_code == 401


async def test_end_before_start(client, auth_headers, owner_profile):
    response = await client.post(
        EXPERIENCES,
        json=experience_payload(
            owner_profile.id, start_date="2021-01-01", end_date="2020-01-01"
        ),
        headers=auth_headers["owner"],
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["validation_errors"][0]["field"] == "end_date"
    assert error["validation_errors"][0]["constraint"] == "date_range"


async def test_future_start_date(client, auth_headers, owner_profile):
    response = await client.post(
        EXPERIENCES,
        json=experience_payload(owner_profile.id, start_date="2999-01-01", end_date=None),
        headers=auth_headers["owner"],
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["validation_errors"][0]["constraint"] == "date_not_future"


async def test_unknown_profile(client, auth_headers):
    response = await client.post(
        EXPERIENCES, json=experience_payload(uuid4()), headers=auth_headers["owner"]
    )

    assert response.status_code == 404
    assert response.json()["error"]["details"]["resource"] == "Profile"


async def test_other_user_cannot_add(client, auth_headers, owner_profile):
    response = await client.post(
        EXPERIENCES, json=experience_payload(owner_profile.id), headers=auth_headers["other"]
    )

    assert response.status_code == 403


async def test_profile_experience_listing(client, auth_headers, owner_profile, owner_experience):
    url = f"/api/v1/profiles/{owner_profile.id}/experiences"
    await client.post(
        EXPERIENCES, json=experience_payload(owner_profile.id), headers=auth_headers["owner"]
    )

    response = await client.get(
        url, params={"sortBy": "start_date", "sortOrder": "asc"}, headers=auth_headers["owner"]
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [e["company"] for e in body["data"]] == ["Globex", "Acme Corp"]


async def test_invalid_sort_field(client, auth_headers, owner_profile):
    response = await client.get(
        f"/api/v1/profiles/{owner_profile.id}/experiences",
        params={"sortBy": "password"},
        headers=auth_headers["owner"],
    )

    assert response.status_code == 400
    assert response.json()["error"]["validation_errors"][0]["field"] == "sortBy"


async def test_update_and_delete(client, auth_headers, owner_profile, owner_experience):
    url = f"{EXPERIENCES}/{owner_experience.id}"

    updated = await client.put(
        url, json={"title": "Lead Engineer"}, headers=auth_headers["owner"]
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Lead Engineer"

    profile = await client.get(f"/api/v1/profiles/{owner_profile.id}")
    assert profile.json()["data"]["experiences"][0]["title"] == "Lead Engineer"

    deleted = await client.delete(url, headers=auth_headers["owner"])
    assert deleted.status_code == 204

    profile = await client.get(f"/api/v1/profiles/{owner_profile.id}")
    assert profile.json()["data"]["experiences"] == []
    assert (await client.get(url, headers=auth_headers["owner"])).status_code == 404


async def test_experience_writes_change_profile_etag(client, auth_headers, owner_profile):
    profile_url = f"/api/v1/profiles/{owner_profile.id}"

    async def current_etag():
        response = await client.get(profile_url)
        assert response.status_code == 200
        return response.headers["ETag"]

    etag = await current_etag()
    created = await client.post(
        EXPERIENCES, json=experience_payload(owner_profile.id), headers=auth_headers["owner"]
    )
    assert created.status_code == 201
    experience_url = f"{EXPERIENCES}/{created.json()['data']['id']}"

    refreshed = await client.get(profile_url, headers={"If-None-Match": etag})
    assert refreshed.status_code == 200
    assert len(refreshed.json()["data"]["experiences"]) == 1

    etag = refreshed.headers["ETag"]
    updated = await client.put(
        experience_url, json={"title": "Lead Engineer"}, headers=auth_headers["owner"]
    )
    assert updated.status_code == 200

    refreshed = await client.get(profile_url, headers={"If-None-Match": etag})
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["experiences"][0]["title"] == "Lead Engineer"

    etag = refreshed.headers["ETag"]
    deleted = await client.delete(experience_url, headers=auth_headers["owner"])
    assert deleted.status_code == 204

    refreshed = await client.get(profile_url, headers={"If-None-Match": etag})
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["experiences"] == []
