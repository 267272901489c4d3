"""httpx wrapper.

Por qué un wrapper:
- Estandariza timeouts, headers y redirects para el cliente de la API de GitHub
  y las descargas de auto-actualización.
- Facilita testing: quien llama recibe un `httpx.Client`, y los tests pasan uno
  construido sobre `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_client(
    settings: AppSettings | None = None,
    *,
    base_url: str = "",
    extra_headers: dict[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an `httpx.Client` with safe defaults.

    Por qué un builder:
    - Centraliza timeouts/headers para que todos los llamantes se comporten igual.
    - `transport` permite a los tests inyectar `httpx.MockTransport`.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {"User-Agent": settings.user_agent}
    if extra_headers:
        headers.update(extra_headers)
    return httpx.Client(
        base_url=base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )
