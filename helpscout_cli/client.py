"""Help Scout Mailbox API v2 client.

Handles OAuth2 token exchange (refresh token with client-credentials
fallback), bearer-authenticated requests with one retry on 401 and one on
429, and the per-resource calls used by the CLI and the MCP server.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from helpscout_cli.errors import ApiError, ConfigurationError, HelpScoutError, NetworkError
from helpscout_cli.store import (
    ACCESS_TOKEN_ACCOUNT,
    APP_ID_ACCOUNT,
    APP_SECRET_ACCOUNT,
    REFRESH_TOKEN_ACCOUNT,
    CredentialStore,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.helpscout.net/v2"
TOKEN_ENDPOINT = "https://api.helpscout.net/v2/oauth2/token"
DEFAULT_RETRY_AFTER = 60
MAX_RETRY_AFTER = 120


@dataclass
class OAuthToken:
    access_token: str
    refresh_token: str = ""
    expires_in: int = 0
    token_type: str = "Bearer"

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "OAuthToken":
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or "",
            expires_in=int(payload.get("expires_in") or 0),
            token_type=payload.get("token_type", "Bearer"),
        )


@dataclass
class AppConfig:
    base_url: str = API_BASE_URL
    token_url: str = TOKEN_ENDPOINT
    request_timeout: float = 30.0


def warn(message: str, **extra: Any) -> None:
    print(json.dumps({"warning": message, **extra}), file=sys.stderr)


def retry_after_seconds(header: Optional[str]) -> int:
    try:
        seconds = int(float(header)) if header is not None else DEFAULT_RETRY_AFTER
    except (ValueError, OverflowError):
        seconds = DEFAULT_RETRY_AFTER
    return max(0, min(seconds, MAX_RETRY_AFTER))


def build_query(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    query: Dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(value)
    return query


def _json_or_empty(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {}


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class TokenManager:
    """Owns the current access token and its copy in the credential store.

    Refreshes are serialized so callers that are rejected with the same
    token trigger a single grant exchange.
    """

    def __init__(self, store: CredentialStore, config: AppConfig):
        self.store = store
        self.config = config
        self._access_token: Optional[str] = None
        self._lock = threading.Lock()

    def get_token(self) -> str:
        if self._access_token:
            return self._access_token
        stored = self.store.get(ACCESS_TOKEN_ACCOUNT)
        if stored:
            self._access_token = stored
            return stored
        return self.refresh()

    def invalidate(self) -> None:
        self._access_token = None

    def clear(self) -> None:
        self.invalidate()
        self.store.delete(ACCESS_TOKEN_ACCOUNT)
        self.store.delete(REFRESH_TOKEN_ACCOUNT)

    def is_authenticated(self) -> bool:
        return bool(self._access_token or self.store.get(ACCESS_TOKEN_ACCOUNT))

    def is_configured(self) -> bool:
        return bool(self.store.resolve(APP_ID_ACCOUNT) and self.store.resolve(APP_SECRET_ACCOUNT))

    def refresh(self) -> str:
        with self._lock:
            return self._exchange()

    def refresh_after_rejection(self, rejected_token: str) -> str:
        with self._lock:
            if self._access_token and self._access_token != rejected_token:
                # Another caller already replaced the rejected token.
                return self._access_token
            self._access_token = None
            if self.store.get(ACCESS_TOKEN_ACCOUNT) == rejected_token:
                self.store.delete(ACCESS_TOKEN_ACCOUNT)
            return self._exchange()

    def _exchange(self) -> str:
        app_id = self.store.resolve(APP_ID_ACCOUNT)
        app_secret = self.store.resolve(APP_SECRET_ACCOUNT)
        if not app_id or not app_secret:
            raise ConfigurationError()

        refresh_token = self.store.get(REFRESH_TOKEN_ACCOUNT)
        if refresh_token:
            try:
                token = self._token_request(
                    {
                        "grant_type": "refresh_token",
                        "client_id": app_id,
                        "client_secret": app_secret,
                        "refresh_token": refresh_token,
                    }
                )
            except HelpScoutError as exc:
                warn("Refresh token failed, using client credentials", reason=str(exc))
            else:
                return self._save(token)

        token = self._token_request(
            {
                "grant_type": "client_credentials",
                "client_id": app_id,
                "client_secret": app_secret,
            }
        )
        return self._save(token)

    def _token_request(self, payload: Dict[str, str]) -> OAuthToken:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            resp = requests.post(
                self.config.token_url,
                data=payload,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"Network request failed during authentication: {exc}") from exc

        logger.debug(
            "Token request grant_type=%s status=%s content-type=%s",
            payload.get("grant_type"),
            resp.status_code,
            resp.headers.get("Content-Type"),
        )
        if not _is_success(resp.status_code):
            raise ApiError("OAuth token request failed", _json_or_empty(resp), resp.status_code)

        data = _json_or_empty(resp)
        if not isinstance(data, dict) or not data.get("access_token"):
            raise ApiError(
                "OAuth token request failed",
                {"error": "invalid_token_response", "error_description": "Token response has no access_token"},
                resp.status_code,
            )
        return OAuthToken.from_response(data)

    def _save(self, token: OAuthToken) -> str:
        self.store.set(ACCESS_TOKEN_ACCOUNT, token.access_token)
        if token.refresh_token:
            self.store.set(REFRESH_TOKEN_ACCOUNT, token.refresh_token)
        self._access_token = token.access_token
        return token.access_token


def tag_name(tag: Any) -> str:
    # Conversation tags carry "tag"; tag records carry "name".
    if isinstance(tag, dict):
        return str(tag.get("tag") or tag.get("name") or "unknown")
    return str(tag)


class HelpScoutClient:
    def __init__(self, config: AppConfig, store: CredentialStore):
        self.config = config
        self.store = store
        self.tokens = TokenManager(store, config)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
        retry_on_401: bool = True,
        retry_on_429: bool = True,
    ) -> Any:
        url = self.config.base_url.rstrip("/") + "/" + path.lstrip("/")
        query = build_query(params)
        while True:
            token = self.tokens.get_token()
            headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            logger.debug("HTTP %s %s params=%s body_present=%s", method, url, query, body is not None)
            try:
                resp = requests.request(
                    method,
                    url,
                    params=query or None,
                    json=body,
                    headers=headers,
                    timeout=self.config.request_timeout,
                )
            except requests.RequestException as exc:
                raise NetworkError(f"Network request failed: {exc}") from exc

            if resp.status_code == 401 and retry_on_401:
                retry_on_401 = False
                self.tokens.refresh_after_rejection(token)
                continue

            if resp.status_code == 429 and retry_on_429:
                retry_on_429 = False
                wait = retry_after_seconds(resp.headers.get("Retry-After"))
                warn(f"Rate limited. Waiting {wait}s before retry...")
                time.sleep(wait)
                continue

            if resp.status_code == 204:
                return {}
            if not _is_success(resp.status_code):
                raise ApiError("API request failed", _json_or_empty(resp), resp.status_code)
            if not resp.content:
                return {}
            return resp.json()

    def _list(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = self.request("GET", path, params=params)
        embedded = payload.get("_embedded") if isinstance(payload, dict) else None
        items = (embedded.get(key) or []) if isinstance(embedded, dict) else []
        return {key: items, "page": payload.get("page") if isinstance(payload, dict) else None}

    def list_all(
        self,
        fetch_page: Callable[[int], Dict[str, Any]],
        key: str,
        start_page: int = 1,
    ) -> List[Any]:
        """Fetch pages one after another from ``start_page`` and concatenate ``key`` items.

        Stops once ``page.number`` reaches ``page.totalPages``. Missing or zero
        page counts mean a single page.
        """
        items: List[Any] = []
        page = start_page
        while True:
            result = fetch_page(page)
            items.extend(result.get(key) or [])
            info = result.get("page") or {}
            number = info.get("number")
            total = info.get("totalPages")
            if not isinstance(number, int) or not isinstance(total, int) or total <= 0:
                break
            if number >= total or page >= total:
                break
            page += 1
        return items

    # Conversations

    def list_conversations(
        self,
        mailbox: Optional[str] = None,
        status: Optional[str] = None,
        tag: Optional[str] = None,
        assigned_to: Optional[str] = None,
        modified_since: Optional[str] = None,
        query: Optional[str] = None,
        sort_field: Optional[str] = None,
        sort_order: Optional[str] = None,
        page: Optional[int] = None,
        embed: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "mailbox": mailbox,
            "status": status,
            "tag": tag,
            "assigned_to": assigned_to,
            "modifiedSince": modified_since,
            "query": query,
            "sortField": sort_field,
            "sortOrder": sort_order,
            "page": page,
            "embed": embed,
        }
        return self._list("/conversations", "conversations", params)

    def list_all_conversations(self, page: Optional[int] = None, **filters: Any) -> List[Dict[str, Any]]:
        return self.list_all(
            lambda p: self.list_conversations(page=p, **filters),
            "conversations",
            start_page=page or 1,
        )

    def get_conversation(self, conversation_id: int, embed: Optional[str] = None) -> Dict[str, Any]:
        return self.request("GET", f"/conversations/{conversation_id}", params={"embed": embed})

    def get_conversation_threads(self, conversation_id: int) -> List[Dict[str, Any]]:
        return self._list(f"/conversations/{conversation_id}/threads", "threads")["threads"]

    def update_conversation(self, conversation_id: int, op: str, path: str, value: Any = None) -> None:
        body: Dict[str, Any] = {"op": op, "path": path}
        if value is not None:
            body["value"] = value
        self.request("PATCH", f"/conversations/{conversation_id}", body=body)

    def delete_conversation(self, conversation_id: int) -> None:
        self.request("DELETE", f"/conversations/{conversation_id}")

    def _conversation_tag_names(self, conversation_id: int) -> List[str]:
        conversation = self.get_conversation(conversation_id)
        tags: Iterable[Any] = (conversation.get("tags") or []) if isinstance(conversation, dict) else []
        return [tag_name(t) for t in tags]

    def set_conversation_tags(self, conversation_id: int, tags: List[str]) -> None:
        self.request("PUT", f"/conversations/{conversation_id}/tags", body={"tags": tags})

    def add_conversation_tag(self, conversation_id: int, tag: str) -> None:
        # The tags endpoint replaces the whole set, so read it first.
        existing = self._conversation_tag_names(conversation_id)
        if tag not in existing:
            existing.append(tag)
        self.set_conversation_tags(conversation_id, existing)

    def remove_conversation_tag(self, conversation_id: int, tag: str) -> None:
        existing = self._conversation_tag_names(conversation_id)
        self.set_conversation_tags(conversation_id, [t for t in existing if t != tag])

    def create_reply(
        self,
        conversation_id: int,
        text: str,
        user: Optional[int] = None,
        draft: Optional[bool] = None,
        status: Optional[str] = None,
    ) -> None:
        body = {"text": text, "user": user, "draft": draft, "status": status}
        body = {k: v for k, v in body.items() if v is not None}
        self.request("POST", f"/conversations/{conversation_id}/reply", body=body)

    def create_note(self, conversation_id: int, text: str, user: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"text": text}
        if user is not None:
            body["user"] = user
        self.request("POST", f"/conversations/{conversation_id}/notes", body=body)

    # Customers

    def list_customers(
        self,
        mailbox: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        modified_since: Optional[str] = None,
        sort_field: Optional[str] = None,
        sort_order: Optional[str] = None,
        page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "mailbox": mailbox,
            "firstName": first_name,
            "lastName": last_name,
            "modifiedSince": modified_since,
            "sortField": sort_field,
            "sortOrder": sort_order,
            "page": page,
            "query": query,
        }
        return self._list("/customers", "customers", params)

    def list_all_customers(self, page: Optional[int] = None, **filters: Any) -> List[Dict[str, Any]]:
        return self.list_all(
            lambda p: self.list_customers(page=p, **filters),
            "customers",
            start_page=page or 1,
        )

    def get_customer(self, customer_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/customers/{customer_id}")

    def create_customer(self, data: Dict[str, Any]) -> Any:
        return self.request("POST", "/customers", body=data)

    def update_customer(self, customer_id: int, data: Dict[str, Any]) -> None:
        self.request("PUT", f"/customers/{customer_id}", body=data)

    def delete_customer(self, customer_id: int) -> None:
        self.request("DELETE", f"/customers/{customer_id}")

    # Tags

    def list_tags(self, page: Optional[int] = None) -> Dict[str, Any]:
        return self._list("/tags", "tags", {"page": page})

    def list_all_tags(self, page: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.list_all(lambda p: self.list_tags(page=p), "tags", start_page=page or 1)

    def get_tag(self, tag_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/tags/{tag_id}")

    # Workflows

    def list_workflows(
        self,
        mailbox: Optional[int] = None,
        type: Optional[str] = None,
        page: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._list("/workflows", "workflows", {"mailboxId": mailbox, "type": type, "page": page})

    def run_workflow(self, workflow_id: int, conversation_ids: List[int]) -> None:
        self.request("POST", f"/workflows/{workflow_id}/run", body={"conversationIds": conversation_ids})

    def update_workflow_status(self, workflow_id: int, status: str) -> None:
        self.request(
            "PATCH",
            f"/workflows/{workflow_id}",
            body={"op": "replace", "path": "/status", "value": status},
        )

    # Mailboxes

    def list_mailboxes(self, page: Optional[int] = None) -> Dict[str, Any]:
        return self._list("/mailboxes", "mailboxes", {"page": page})

    def get_mailbox(self, mailbox_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/mailboxes/{mailbox_id}")
