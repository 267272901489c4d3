"""GitHub REST/GraphQL client (httpx, sync).

Por qué un adaptador:
- Los servicios de copia y limpieza hablan en términos de "listar repos", "crear
  issue"; este módulo es dueño de URLs, paginación, headers de auth y errores.
- Las llamadas que modifican se espacian en un solo lugar para respetar los
  rate limits secundarios de GitHub.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Iterator, Mapping

import httpx

from adapters.http_client import build_client
from core.config import AppSettings
from core.errors import AuthenticationError, ConnectivityError, GitHubAPIError, ToolError
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


def resolve_token(
    settings: AppSettings,
    runner: CommandRunner | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Return `(token, source)`.

    Order: settings (`SYSTEM_SETUP_GITHUB_TOKEN` / user .env), `GH_TOKEN`,
    `GITHUB_TOKEN`, then `gh auth token`.
    """

    environ = os.environ if environ is None else environ
    if settings.github_token:
        return settings.github_token, "settings"
    for name in ("GH_TOKEN", "GITHUB_TOKEN"):
        value = (environ.get(name) or "").strip()
        if value:
            return value, name

    if runner is not None and runner.which("gh"):
        try:
            result = runner.run(["gh", "auth", "token"], check=False)
        except ToolError:
            result = None
        token = (result.stdout or "").strip() if result is not None and result.returncode == 0 else ""
        if token:
            return token, "gh auth token"

    raise AuthenticationError(
        "No GitHub token found",
        hint="Run `system-setup doctor setup-github`, export GH_TOKEN, or `gh auth login`.",
    )


class GitHubClient:
    """Thin wrapper over the GitHub API."""

    def __init__(
        self,
        token: str,
        *,
        settings: AppSettings | None = None,
        throttle: float = 0.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = settings or AppSettings()
        self.token = token
        self.throttle = throttle
        self._sleep = sleep
        self._http = build_client(
            settings,
            base_url=settings.github_api_url.rstrip("/"),
            extra_headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- plumbing ---------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"GitHub request failed: {method} {url}: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        message = response.reason_phrase
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("message"):
            message = str(payload["message"])
        raise GitHubAPIError(
            f"{response.request.method} {response.request.url.path} -> {response.status_code}: {message}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _mutate(self, method: str, path: str, payload: Any | None = None) -> Any:
        if self.throttle:
            self._sleep(self.throttle)
        response = self._request(method, path, json=payload)
        self._raise_for_status(response)
        return self._json(response)

    # --- REST ---------------------------------------------------------------

    def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        response = self._request("GET", path, params=params)
        self._raise_for_status(response)
        return self._json(response)

    def paginate(self, path: str, *, params: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Yield every item of a list endpoint, following `Link: rel="next"`."""

        query = {"per_page": 100, **(params or {})}
        url: str | None = path
        while url:
            response = self._request("GET", url, params=query)
            self._raise_for_status(response)
            items = self._json(response) or []
            yield from items
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            query = None

    def exists(self, path: str) -> bool:
        response = self._request("GET", path)
        if response.status_code == 404:
            return False
        self._raise_for_status(response)
        return True

    def post(self, path: str, payload: Any | None = None) -> Any:
        return self._mutate("POST", path, payload)

    def patch(self, path: str, payload: Any | None = None) -> Any:
        return self._mutate("PATCH", path, payload)

    def put(self, path: str, payload: Any | None = None) -> Any:
        return self._mutate("PUT", path, payload)

    def delete(self, path: str) -> None:
        self._mutate("DELETE", path)

    # --- GraphQL ------------------------------------------------------------

    def graphql(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        mutation: bool = False,
    ) -> dict[str, Any]:
        if mutation and self.throttle:
            self._sleep(self.throttle)
        response = self._request("POST", "/graphql", json={"query": query, "variables": variables or {}})
        self._raise_for_status(response)
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise GitHubAPIError(f"GraphQL error: {messages}")
        return payload.get("data") or {}

    # --- auth ---------------------------------------------------------------

    def verify_auth(self) -> str:
        """Login of the authenticated user; `AuthenticationError` when the token is rejected."""

        try:
            user = self.get("/user")
        except GitHubAPIError as exc:
            if exc.status_code in (401, 403):
                raise AuthenticationError(
                    "GitHub rejected the token",
                    hint="Check the token scopes (repo, delete_repo, read:org).",
                ) from exc
            raise
        return str((user or {}).get("login") or "")
