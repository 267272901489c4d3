from __future__ import annotations

import httpx
import pytest

from conftest import FakeRunner
from adapters.github_client import GitHubClient, resolve_token
from core.config import AppSettings
from core.errors import AuthenticationError, ConnectivityError, GitHubAPIError


def _settings(**overrides) -> AppSettings:
    return AppSettings(_env_file=None, github_api_url="https://api.test", **overrides)


def _client(handler, **kwargs) -> GitHubClient:
    return GitHubClient("tkn", settings=_settings(), transport=httpx.MockTransport(handler), **kwargs)


def test_headers_and_get():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200, json={"login": "octo"})

    with _client(handler) as client:
        assert client.get("/user") == {"login": "octo"}

    assert seen["authorization"] == "Bearer tkn"
    assert seen["accept"] == "application/vnd.github+json"
    assert seen["x-github-api-version"] == "2022-11-28"


def test_paginate_follows_next_links():
    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params.get("page", "1")
        if page == "1":
            assert request.url.params["per_page"] == "100"
            return httpx.Response(
                200,
                json=[{"n": 1}, {"n": 2}],
                headers={"Link": '<https://api.test/orgs/acme/repos?per_page=100&page=2>; rel="next"'},
            )
        return httpx.Response(200, json=[{"n": 3}])

    with _client(handler) as client:
        items = list(client.paginate("/orgs/acme/repos"))

    assert [item["n"] for item in items] == [1, 2, 3]


def test_error_status_raises_with_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "Validation Failed"})

    with _client(handler) as client:
        with pytest.raises(GitHubAPIError) as info:
            client.post("/repos/acme/x/labels", {"name": "bug"})

    assert info.value.status_code == 422
    assert "Validation Failed" in info.value.message
    assert info.value.exit_code == 2


def test_exists_maps_404_to_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404 if request.url.path.endswith("missing") else 200, json={})

    with _client(handler) as client:
        assert client.exists("/repos/acme/present")
        assert not client.exists("/repos/acme/missing")


def test_mutations_are_throttled():
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    with _client(handler, throttle=0.3, sleep=sleeps.append) as client:
        client.get("/user")
        client.delete("/repos/acme/x")
        client.patch("/repos/acme/x", {"has_wiki": True})

    assert sleeps == [0.3, 0.3]


def test_graphql_errors_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "Could not resolve to a Repository"}]})

    with _client(handler) as client:
        with pytest.raises(GitHubAPIError, match="Could not resolve"):
            client.graphql("query { viewer { login } }")


def test_transport_failure_is_connectivity_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with _client(handler) as client:
        with pytest.raises(ConnectivityError) as info:
            client.get("/user")

    assert info.value.exit_code == 3


def test_verify_auth_rejects_bad_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Bad credentials"})

    with _client(handler) as client:
        with pytest.raises(AuthenticationError):
            client.verify_auth()


def test_token_resolution_order():
    runner = FakeRunner(tools=["gh"], responses={("gh", "auth", "token"): (0, "from-gh\n")})

    assert resolve_token(_settings(github_token="cfg"), runner, environ={"GH_TOKEN": "env"}) == ("cfg", "settings")
    assert resolve_token(_settings(), runner, environ={"GITHUB_TOKEN": "env2"}) == ("env2", "GITHUB_TOKEN")
    assert resolve_token(_settings(), runner, environ={}) == ("from-gh", "gh auth token")

    with pytest.raises(AuthenticationError):
        resolve_token(_settings(), FakeRunner(), environ={})
