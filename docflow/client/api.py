"""
DocFlow REST client.

All outbound calls to the ``/api/v1`` backend go through ``DocflowClient``.
Every response is expected in the envelope ``{data | error, request_id}``.

Failures are split in two:
  - ``TransportError``: network failure, or a body that is not a JSON
    envelope. Carries status code and content type for the log; shown to
    the user as a generic failure.
  - ``ApiError``: the backend answered with ``error``. Carries ``code``,
    ``message``, per-field ``fields`` and the ``request_id``.

No retries: every failure ends the user action that caused it.

Testability: pass a fake ``session`` (anything with ``request``) instead of
letting the client create a real requests.Session.

Usage:
    client = DocflowClient("http://localhost:8000")
    client.login("alice@example.com", "secret1")
    detail = client.get_flow(flow_id)
    editor = FlowEditor.from_detail(detail, editable=True)
    editor.save(client)
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from docflow.client.session import UserSession

logger = logging.getLogger(__name__)

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30

API_PREFIX = "/api/v1"


class TransportError(Exception):
    """The request failed below the API contract (network, non-JSON body)."""

    def __init__(self, message: str, status_code: int | None = None,
                 content_type: str | None = None) -> None:
        self.status_code = status_code
        self.content_type = content_type
        super().__init__(message)


class ApiError(Exception):
    """The backend returned an error envelope."""

    def __init__(self, code: str, message: str, fields: dict | None = None,
                 request_id: str | None = None, status: int | None = None) -> None:
        self.code = code
        self.message = message
        self.fields = fields or {}
        self.request_id = request_id
        self.status = status
        super().__init__(f"{code}: {message}")


class NotLoggedIn(Exception):
    """A protected call was made without a session."""


class DocflowClient:
    """Typed wrapper over the backend routes.

    Owns the ``UserSession``: ``login`` creates it, ``logout`` clears it.
    """

    def __init__(self, base_url: str, session: requests.Session | None = None,
                 timeout: int = _DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._http: requests.Session | None = session
        self.user_session: UserSession | None = None

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def http(self) -> requests.Session:
        if self._http is None:
            self._http = requests.Session()
        return self._http

    def _url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}{path}"

    def request(self, method: str, path: str, *, json_body: Any = None,
                params: dict | None = None, auth: bool = True) -> Any:
        """Send one request and return the envelope's ``data``.

        Raises:
            NotLoggedIn: ``auth`` is set and there is no session.
            TransportError: network error or a non-envelope body.
            ApiError: the body carries ``error``.
        """
        headers = {"Accept": "application/json"}
        if auth:
            if self.user_session is None:
                raise NotLoggedIn("login required")
            headers.update(self.user_session.auth_header)

        kwargs: dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if json_body is not None:
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params

        url = self._url(path)
        try:
            resp = self.http.request(method, url, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Request failed: %s %s: %s", method, url, exc)
            raise TransportError(f"Network error: {exc}") from exc

        content_type = resp.headers.get("Content-Type", "")
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or ("data" not in body and "error" not in body):
            logger.warning("Unexpected response: %s %s status=%s content_type=%s",
                           method, url, resp.status_code, content_type)
            raise TransportError("Unexpected response from server",
                                 status_code=resp.status_code, content_type=content_type)

        error = body.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise TransportError("Malformed error envelope",
                                     status_code=resp.status_code, content_type=content_type)
            logger.info("API error %s on %s %s (request_id=%s)",
                        error.get("code"), method, path, body.get("request_id"))
            raise ApiError(
                code=error.get("code") or "UNKNOWN",
                message=error.get("message") or "",
                fields=error.get("fields") if isinstance(error.get("fields"), dict) else None,
                request_id=body.get("request_id"),
                status=resp.status_code,
            )
        return body.get("data")

    # ── Auth ─────────────────────────────────────────────────────────────────

    def login(self, email: str, password: str) -> UserSession:
        data = self.request("POST", "/auth/login",
                            json_body={"email": email, "password": password}, auth=False)
        user = data.get("user") or {}
        self.user_session = UserSession.from_token(data["token"], email=user.get("email"))
        logger.info("Logged in as %s", self.user_session.email)
        return self.user_session

    def logout(self) -> None:
        self.user_session = None

    def me(self) -> dict:
        return self.request("GET", "/auth/me")

    # ── Flows ────────────────────────────────────────────────────────────────

    def list_flows(self, status: str | None = None) -> list[dict]:
        return self.request("GET", "/flows", params={"status": status} if status else None)

    def create_flow(self, title: str, overview: str = "", owner_dept_id: str | None = None) -> dict:
        return self.request("POST", "/flows", json_body={
            "title": title, "overview": overview, "owner_dept_id": owner_dept_id,
        })

    def get_flow(self, flow_id: str) -> dict:
        return self.request("GET", f"/flows/{flow_id}")

    def update_flow(self, flow_id: str, payload: dict) -> dict:
        return self.request("PUT", f"/flows/{flow_id}", json_body=payload)

    def submit_review(self, flow_id: str) -> dict:
        return self.request("POST", f"/flows/{flow_id}/submit_review", json_body={})

    def publish(self, flow_id: str) -> dict:
        return self.request("POST", f"/flows/{flow_id}/publish", json_body={})

    def list_versions(self, flow_id: str) -> list[dict]:
        return self.request("GET", f"/flows/{flow_id}/versions")

    def get_version(self, flow_id: str, version_id: str) -> dict:
        return self.request("GET", f"/flows/{flow_id}/versions/{version_id}")

    def share_flow(self, flow_id: str, user_id: str, role: str = "VIEW") -> dict:
        return self.request("POST", f"/flows/{flow_id}/shares",
                            json_body={"user_id": user_id, "role": role})

    # ── Documents ────────────────────────────────────────────────────────────

    def list_documents(self) -> list[dict]:
        return self.request("GET", "/docs")

    def create_document(self, title: str, content: str = "", visibility: str = "PRIVATE") -> dict:
        return self.request("POST", "/docs", json_body={
            "title": title, "content": content, "visibility": visibility,
        })

    def get_document(self, doc_id: str) -> dict:
        return self.request("GET", f"/docs/{doc_id}")

    def update_document(self, doc_id: str, title: str, content: str, visibility: str | None = None) -> dict:
        body = {"title": title, "content": content}
        if visibility:
            body["visibility"] = visibility
        return self.request("PUT", f"/docs/{doc_id}", json_body=body)

    def list_document_versions(self, doc_id: str) -> list[dict]:
        return self.request("GET", f"/docs/{doc_id}/versions")

    # ── Admin ────────────────────────────────────────────────────────────────

    def list_users(self) -> list[dict]:
        return self.request("GET", "/admin/users")

    def create_user(self, email: str, password: str, role: str = "USER") -> dict:
        return self.request("POST", "/admin/users",
                            json_body={"email": email, "password": password, "role": role})

    def reset_password(self, user_id: str, password: str) -> dict:
        return self.request("POST", f"/admin/users/{user_id}/reset_password",
                            json_body={"password": password})
