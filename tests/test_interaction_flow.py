"""
tests.test_interaction_flow

End-to-end authorization sequences through the HTTP surface.

Responsibilities:
- Drive authorize -> login -> resume -> consent -> resume against the simulated provider.
- Check cache headers, status mapping and single use of finalized interactions.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from oidc_interactions.api.app import create_app

AUTH_PARAMS = {
    "client_id": "client-a",
    "redirect_uri": "https://rp.example/cb",
    "response_type": "code",
    "scope": "openid email",
    "state": "xyz",
}


async def _start(client, **overrides) -> str:
    r = await client.get("/v1/provider/auth", params={**AUTH_PARAMS, **overrides})
    assert r.status_code == 303
    location = r.headers["location"]
    assert location.startswith("/interaction/")
    return location.rsplit("/", 1)[1]


async def _login(client, uid: str, login: str = "alice") -> str:
    r = await client.post(f"/interaction/{uid}/login", data={"login": login})
    assert r.status_code == 303
    assert r.headers["location"] == f"/v1/provider/resume/{uid}"
    r = await client.get(r.headers["location"])
    assert r.status_code == 303
    return r.headers["location"]


@pytest.mark.asyncio
async def test_login_then_consent_reaches_the_client(client) -> None:
    uid = await _start(client)

    r = await client.get(f"/interaction/{uid}")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    assert "Sign-in" in r.text
    assert f'action="/interaction/{uid}/login"' in r.text

    r = await client.post(f"/interaction/{uid}/login", data={"login": "nobody"})
    assert r.status_code == 401
    assert r.headers["cache-control"] == "no-store"
    assert "Invalid login." in r.text

    location = await _login(client, uid)
    assert location.startswith("/interaction/")
    consent_uid = location.rsplit("/", 1)[1]
    assert consent_uid != uid

    r = await client.get(f"/interaction/{consent_uid}")
    assert r.status_code == 200
    assert "Authorize" in r.text
    assert "<li>email</li>" in r.text

    r = await client.post(f"/interaction/{consent_uid}/confirm")
    assert r.status_code == 303
    r = await client.get(r.headers["location"])
    assert r.status_code == 303

    redirect = urlsplit(r.headers["location"])
    query = parse_qs(redirect.query)
    assert f"{redirect.scheme}://{redirect.netloc}{redirect.path}" == "https://rp.example/cb"
    assert query["state"] == ["xyz"]
    assert query["iss"] == ["https://oidc.congee.me"]
    assert query["code"][0]

    # Both interactions are spent.
    r = await client.get(f"/interaction/{consent_uid}")
    assert r.status_code == 404
    assert r.headers["cache-control"] == "no-store"
    r = await client.get(f"/v1/provider/resume/{consent_uid}")
    assert r.status_code == 404
    assert r.json()["error"] == "invalid_request"

    r = await client.get(f"/v1/provider/interactions/{consent_uid}/events")
    kinds = [e["event_type"] for e in r.json()]
    assert kinds[0] == "INTERACTION_STARTED"
    assert "CONSENT_SUBMITTED" in kinds
    assert "INTERACTION_FINISHED" in kinds


@pytest.mark.asyncio
async def test_existing_grant_skips_consent(client) -> None:
    uid = await _start(client)
    consent_uid = (await _login(client, uid)).rsplit("/", 1)[1]
    r = await client.post(f"/interaction/{consent_uid}/confirm")
    await client.get(r.headers["location"])

    second = await _start(client, state="again")
    location = await _login(client, second)

    assert location.startswith("https://rp.example/cb?code=")
    assert "state=again" in location


@pytest.mark.asyncio
async def test_abort_returns_access_denied_to_the_client(client) -> None:
    uid = await _start(client)

    r = await client.get(f"/interaction/{uid}/abort")
    assert r.status_code == 303
    assert r.headers["cache-control"] == "no-store"
    r = await client.get(r.headers["location"])

    query = parse_qs(urlsplit(r.headers["location"]).query)
    assert query["error"] == ["access_denied"]
    assert query["error_description"] == ["End-User aborted interaction"]
    assert query["state"] == ["xyz"]

    r = await client.get(f"/interaction/{uid}/abort")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_wrong_action_for_prompt_is_rejected(client) -> None:
    uid = await _start(client)

    r = await client.post(f"/interaction/{uid}/confirm")

    assert r.status_code == 400
    assert "invalid_request" in r.text
    # The interaction is still waiting for a login.
    r = await client.get(f"/interaction/{uid}")
    assert r.status_code == 200
    assert "Sign-in" in r.text


@pytest.mark.asyncio
async def test_login_hint_prefills_the_form(client) -> None:
    uid = await _start(client, login_hint="alice")

    r = await client.get(f"/interaction/{uid}")

    assert 'value="alice"' in r.text
    assert 'placeholder="Enter your login"' in r.text


@pytest.mark.asyncio
async def test_zero_max_age_asks_for_login_once(client) -> None:
    uid = await _start(client, max_age="0")

    location = await _login(client, uid)
    assert location.startswith("/interaction/")

    r = await client.get(location)
    assert r.status_code == 200
    assert "Authorize" in r.text
    assert "Sign-in" not in r.text

    r = await client.post(f"{location}/confirm")
    assert r.status_code == 303
    r = await client.get(r.headers["location"])
    assert r.status_code == 303
    assert r.headers["location"].startswith("https://rp.example/cb?code=")


@pytest.mark.asyncio
async def test_select_account_is_served_by_the_login_form(client) -> None:
    uid = await _start(client, prompt="select_account")

    r = await client.get(f"/interaction/{uid}")

    assert r.status_code == 200
    assert "Sign-in" in r.text


@pytest.mark.asyncio
async def test_authorization_request_validation(client) -> None:
    r = await client.get("/v1/provider/auth", params={**AUTH_PARAMS, "client_id": "unknown"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_client"

    r = await client.get("/v1/provider/auth", params={**AUTH_PARAMS, "redirect_uri": "https://evil.example/cb"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_redirect_uri"

    r = await client.get("/v1/provider/auth", params={**AUTH_PARAMS, "claims": "not-json"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_request"

    for max_age in ("abc", "-1", "1.5"):
        r = await client.get("/v1/provider/auth", params={**AUTH_PARAMS, "max_age": max_age})
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_unknown_interaction_is_404(client) -> None:
    r = await client.get("/interaction/does-not-exist")

    assert r.status_code == 404
    assert r.headers["cache-control"] == "no-store"
    assert "interaction session not found" in r.text


@pytest.mark.asyncio
async def test_provider_routes_hidden_in_prod(settings, running) -> None:
    app = create_app(settings=settings.model_copy(update={"env": "prod"}))

    async with running(app) as client:
        r = await client.get("/v1/provider/auth", params=AUTH_PARAMS)

    assert r.status_code == 404
