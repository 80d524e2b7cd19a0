"""Docmost REST client: maps gateway operations onto authenticated backend calls.

Docmost exposes a POST-only JSON API under /api. Successful responses are
usually wrapped as {"data": ...}; the wrapper is stripped before returning.
Authentication is either a static API token (Bearer) or the authToken cookie
obtained once via login() during startup.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from docmost_gateway.config.settings import Credential, TokenCredential
from docmost_gateway.constants import AUTH_COOKIE_NAME, SPACES_PAGE_LIMIT
from docmost_gateway.infra.errors import AuthError, BackendError, ConfigError, ValidationError

logger = structlog.get_logger()

_HTML_MARKER = "<!doctype html"


def _is_json(content_type: str) -> bool:
    return "application/json" in content_type


def _decode_body(response: httpx.Response) -> Any:
    """Parsed JSON for JSON responses, raw text otherwise. Never raises."""
    if _is_json(response.headers.get("content-type", "")):
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return response.text
    return response.text


def _describe(body: Any) -> str:
    return body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)


def extract_auth_cookie(response: httpx.Response) -> str:
    """Return the authToken value from the response's Set-Cookie headers.

    Raises AuthError if the cookie is absent or carries an empty value.
    """
    prefix = f"{AUTH_COOKIE_NAME}="
    for raw in response.headers.get_list("set-cookie"):
        cookie = raw.strip()
        if not cookie.startswith(prefix):
            continue
        token = cookie.split(";", 1)[0][len(prefix):].strip()
        if not token:
            raise AuthError(f"Could not extract a value from the {AUTH_COOKIE_NAME} cookie.")
        return token
    raise AuthError(f"Docmost did not return an {AUTH_COOKIE_NAME} cookie on login.")


class DocmostClient:
    """Async client for one Docmost instance.

    The session token is assigned at most once, by login(), and only when no
    static token is configured.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout_s: float = 30.0,
        max_sidebar_pages: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token or None
        self._session_token: str | None = None
        self._max_sidebar_pages = max_sidebar_pages
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_credential(
        cls,
        base_url: str,
        credential: Credential,
        **kwargs: Any,
    ) -> DocmostClient:
        api_token = credential.token if isinstance(credential, TokenCredential) else None
        return cls(base_url, api_token=api_token, **kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def session_token(self) -> str | None:
        return self._session_token

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        if self._api_token:
            return {"Authorization": f"Bearer {self._api_token}"}
        if self._session_token:
            return {"Cookie": f"{AUTH_COOKIE_NAME}={self._session_token}"}
        return {}

    async def _send(
        self, path: str, body: Mapping[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        try:
            response = await self._http.post(
                path,
                json=dict(body),
                headers={"Content-Type": "application/json", **headers},
            )
        except httpx.TimeoutException as e:
            logger.warning("backend_request_timeout", path=path)
            raise BackendError(f"Docmost request to {path} timed out.") from e
        except httpx.HTTPError as e:
            logger.warning("backend_request_unreachable", path=path, error=str(e))
            raise BackendError(f"Could not reach Docmost at {path}: {e}") from e
        # Auth is header-driven only; never replay Set-Cookie values from the jar.
        self._http.cookies.clear()
        return response

    async def post(self, path: str, body: Mapping[str, Any] | None = None) -> Any:
        """POST a JSON body and return the (unwrapped) response payload.

        Raises BackendError on failure status, ConfigError when Docmost answers
        with an HTML page (usually a wrong base URL or API path).
        """
        response = await self._send(path, body or {}, self._auth_headers())
        content_type = response.headers.get("content-type", "")

        if response.is_error:
            failure = _decode_body(response)
            logger.warning(
                "backend_request_failed", path=path, status=response.status_code,
            )
            raise BackendError(
                f"Docmost returned {response.status_code}: {_describe(failure)}",
                status=response.status_code,
                body=failure,
            )

        text = response.text
        # JSON bodies may legitimately embed HTML inside page content.
        if (
            "text/html" in content_type
            or text.lstrip().lower().startswith(_HTML_MARKER)
            or (not _is_json(content_type) and _HTML_MARKER in text.lower())
        ):
            logger.error("backend_returned_html", path=path, base_url=self._base_url)
            raise ConfigError(
                "Docmost returned HTML instead of JSON. "
                "Check that DOCMOST_BASE_URL points at the Docmost API."
            )

        if not _is_json(content_type):
            return text
        try:
            payload = json.loads(text) if text else None
        except json.JSONDecodeError as e:
            raise BackendError(
                f"Docmost returned invalid JSON for {path}: {e}",
                status=response.status_code,
                body=text,
            ) from e

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list_spaces(self) -> Any:
        return await self.post("/api/spaces", {"page": 1, "limit": SPACES_PAGE_LIMIT})

    async def list_pages(self, space_id: str | None) -> dict[str, Any]:
        """Collect every sidebar page of a space, following meta.hasNextPage.

        Stops after max_sidebar_pages round trips; the returned meta then still
        reports hasNextPage=true.
        """
        if not space_id:
            raise ValidationError("spaceId is required to list pages.")

        items: list[Any] = []
        meta: Any = None
        page = 1
        while True:
            result = await self.post(
                "/api/pages/sidebar-pages", {"spaceId": space_id, "page": page},
            )
            if isinstance(result, dict):
                items.extend(result.get("items") or [])
                meta = result.get("meta")
            else:
                meta = None
            if not (isinstance(meta, dict) and meta.get("hasNextPage")):
                break
            if page >= self._max_sidebar_pages:
                logger.warning(
                    "sidebar_pagination_capped",
                    space_id=space_id,
                    pages=page,
                    items=len(items),
                )
                break
            page += 1

        return {"items": items, "meta": meta}

    async def get_page(self, page_id: str | None) -> Any:
        if not page_id:
            raise ValidationError("pageId is required to fetch a page.")
        return await self.post("/api/pages/info", {"pageId": page_id})

    async def search_pages(self, query: str | None) -> Any:
        if not query:
            raise ValidationError("query is required to search.")
        return await self.post("/api/search", {"query": query})

    async def create_page(
        self,
        title: str | None,
        content: str | None,
        space_id: str | None,
        folder_id: str | None = None,
    ) -> Any:
        if not title or not content or not space_id:
            raise ValidationError("title, content and spaceId are required to create a page.")
        return await self.post(
            "/api/pages/create",
            {
                "title": title,
                "content": content,
                "spaceId": space_id,
                "parentPageId": folder_id or None,
            },
        )

    async def update_page(
        self, page_id: str | None, payload: Mapping[str, Any] | None = None
    ) -> Any:
        if not page_id:
            raise ValidationError("pageId is required to update a page.")
        if payload is not None and not isinstance(payload, Mapping):
            raise ValidationError("payload must be an object with the fields to update.")
        return await self.post("/api/pages/update", {"pageId": page_id, **(payload or {})})

    async def login(self, email: str | None, password: str | None) -> str:
        """Exchange email/password for a session token and keep it for later calls.

        Raises AuthError when no authToken cookie comes back, or when a
        session token has already been established.
        """
        if not email or not password:
            raise ValidationError("email and password are required to log in.")
        if self._session_token is not None:
            raise AuthError("A Docmost session token is already established.", code="AUTH_ALREADY_SET")

        response = await self._send(
            "/api/auth/login", {"email": email, "password": password}, headers={},
        )
        if response.is_error:
            failure = _decode_body(response)
            logger.warning("docmost_login_failed", status=response.status_code)
            raise BackendError(
                f"Docmost returned {response.status_code} on login: {_describe(failure)}",
                status=response.status_code,
                body=failure,
            )

        token = extract_auth_cookie(response)
        self._session_token = token
        logger.info("docmost_login_succeeded", base_url=self._base_url)
        return token
