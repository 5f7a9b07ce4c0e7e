import json
import tempfile
import unittest
from contextlib import redirect_stderr
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Optional

from unittest.mock import MagicMock, patch

import requests

from helpscout_cli import client as hs_client
from helpscout_cli.errors import ApiError, ConfigurationError, NetworkError, classify_error
from helpscout_cli.store import (
    ACCESS_TOKEN_ACCOUNT,
    APP_ID_ACCOUNT,
    APP_SECRET_ACCOUNT,
    REFRESH_TOKEN_ACCOUNT,
    CredentialStore,
)

TEST_APP_SECRET = "dummy-app-secret"  # pragma: allowlist secret


def _response(status_code: int, payload: Any = None, headers: Optional[Dict[str, str]] = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.content = json.dumps(payload).encode() if payload is not None else b""
    resp.json.return_value = payload if payload is not None else {}
    return resp


class ClientTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.store = CredentialStore(Path(self.tmp.name) / ".env", environ={})
        self.config = hs_client.AppConfig()
        self.client = hs_client.HelpScoutClient(self.config, self.store)

    def configure_app(self, access_token: Optional[str] = "old-token") -> None:
        self.store.set(APP_ID_ACCOUNT, "app-id")
        self.store.set(APP_SECRET_ACCOUNT, TEST_APP_SECRET)
        if access_token:
            self.store.set(ACCESS_TOKEN_ACCOUNT, access_token)


class RequestRetryTests(ClientTestCase):
    @patch("helpscout_cli.client.requests.post")
    @patch("helpscout_cli.client.requests.request")
    def test_unauthorized_refreshes_once_and_retries(self, request_mock: Any, post_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [_response(401), _response(200, {"id": 1})]
        post_mock.return_value = _response(200, {"access_token": "new-token"})

        result = self.client.get_conversation(1)

        self.assertEqual(result, {"id": 1})
        self.assertEqual(request_mock.call_count, 2)
        retried_headers = request_mock.call_args_list[1].kwargs["headers"]
        self.assertEqual(retried_headers["Authorization"], "Bearer new-token")
        post_mock.assert_called_once()
        self.assertEqual(post_mock.call_args.kwargs["data"]["grant_type"], "client_credentials")
        self.assertEqual(self.store.get(ACCESS_TOKEN_ACCOUNT), "new-token")

    @patch("helpscout_cli.client.requests.post")
    @patch("helpscout_cli.client.requests.request")
    def test_second_unauthorized_is_not_retried(self, request_mock: Any, post_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [_response(401), _response(401, {"message": "Unauthorized"})]
        post_mock.return_value = _response(200, {"access_token": "new-token"})

        with self.assertRaises(ApiError) as ctx:
            self.client.get_conversation(1)

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(request_mock.call_count, 2)
        post_mock.assert_called_once()

    @patch("helpscout_cli.client.requests.post")
    @patch("helpscout_cli.client.requests.request")
    def test_rejected_token_is_removed_from_store_when_refresh_fails(
        self, request_mock: Any, post_mock: Any
    ) -> None:
        self.configure_app(access_token="revoked")
        request_mock.return_value = _response(401)
        post_mock.return_value = _response(500, {"error": "server_error"})

        with self.assertRaises(ApiError):
            self.client.get_mailbox(1)

        self.assertIsNone(self.store.get(ACCESS_TOKEN_ACCOUNT))
        self.assertFalse(self.client.tokens.is_authenticated())
        request_mock.assert_called_once()

    @patch("helpscout_cli.client.time.sleep")
    @patch("helpscout_cli.client.requests.request")
    def test_rate_limit_wait_is_clamped(self, request_mock: Any, sleep_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [
            _response(429, headers={"Retry-After": "300"}),
            _response(200, {"id": 7}),
        ]

        stderr = StringIO()
        with redirect_stderr(stderr):
            result = self.client.get_mailbox(7)

        self.assertEqual(result, {"id": 7})
        sleep_mock.assert_called_once_with(120)
        warning = json.loads(stderr.getvalue().strip())
        self.assertEqual(warning["warning"], "Rate limited. Waiting 120s before retry...")

    @patch("helpscout_cli.client.time.sleep")
    @patch("helpscout_cli.client.requests.request")
    def test_rate_limit_defaults_to_sixty_seconds(self, request_mock: Any, sleep_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [_response(429), _response(200, {"id": 7})]

        with redirect_stderr(StringIO()):
            self.client.get_mailbox(7)

        sleep_mock.assert_called_once_with(60)

    @patch("helpscout_cli.client.time.sleep")
    @patch("helpscout_cli.client.requests.request")
    def test_second_rate_limit_raises(self, request_mock: Any, sleep_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [
            _response(429, headers={"Retry-After": "1"}),
            _response(429, {"error": "too_many_requests"}, headers={"Retry-After": "1"}),
        ]

        with redirect_stderr(StringIO()):
            with self.assertRaises(ApiError) as ctx:
                self.client.get_mailbox(7)

        self.assertEqual(ctx.exception.status_code, 429)
        sleep_mock.assert_called_once_with(1)

    @patch("helpscout_cli.client.requests.request")
    def test_transport_failure_raises_network_error(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(NetworkError) as ctx:
            self.client.list_tags()

        self.assertIn("Network request failed", ctx.exception.message)
        self.assertEqual(ctx.exception.status_code, 0)

    @patch("helpscout_cli.client.requests.request")
    def test_no_content_returns_empty_object(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.return_value = _response(204)

        self.assertEqual(self.client.request("DELETE", "/conversations/3"), {})

    @patch("helpscout_cli.client.requests.request")
    def test_query_omits_none_and_renders_booleans(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.return_value = _response(200, {})

        self.client.request("GET", "/conversations", params={"status": None, "draft": True, "page": 2})

        method, url = request_mock.call_args.args
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://api.helpscout.net/v2/conversations")
        self.assertEqual(request_mock.call_args.kwargs["params"], {"draft": "true", "page": "2"})


class TokenManagerTests(ClientTestCase):
    @patch("helpscout_cli.client.requests.post")
    def test_refresh_token_failure_falls_back_to_client_credentials(self, post_mock: Any) -> None:
        self.configure_app(access_token=None)
        self.store.set(REFRESH_TOKEN_ACCOUNT, "stale-refresh")
        post_mock.side_effect = [
            _response(400, {"error": "invalid_grant"}),
            _response(200, {"access_token": "fresh", "refresh_token": "next-refresh"}),
        ]

        with redirect_stderr(StringIO()) as stderr:
            token = self.client.tokens.refresh()

        self.assertEqual(token, "fresh")
        grants = [c.kwargs["data"]["grant_type"] for c in post_mock.call_args_list]
        self.assertEqual(grants, ["refresh_token", "client_credentials"])
        self.assertEqual(self.store.get(REFRESH_TOKEN_ACCOUNT), "next-refresh")
        self.assertIn("Refresh token failed", stderr.getvalue())

    @patch("helpscout_cli.client.requests.post")
    @patch("helpscout_cli.client.requests.request")
    def test_missing_credentials_fail_before_network(self, request_mock: Any, post_mock: Any) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            self.client.get_conversation(1)

        self.assertEqual(ctx.exception.status_code, 401)
        request_mock.assert_not_called()
        post_mock.assert_not_called()

    @patch("helpscout_cli.client.requests.post")
    def test_env_credentials_are_used(self, post_mock: Any) -> None:
        store = CredentialStore(
            Path(self.tmp.name) / "env-only",
            environ={"HELPSCOUT_APP_ID": "env-id", "HELPSCOUT_APP_SECRET": TEST_APP_SECRET},
        )
        post_mock.return_value = _response(200, {"access_token": "env-token"})

        token = hs_client.TokenManager(store, self.config).get_token()

        self.assertEqual(token, "env-token")
        self.assertEqual(post_mock.call_args.kwargs["data"]["client_id"], "env-id")

    @patch("helpscout_cli.client.requests.post")
    def test_client_credentials_transport_failure_raises_network_error(self, post_mock: Any) -> None:
        self.configure_app(access_token=None)
        post_mock.side_effect = requests.ConnectionError("connection reset")

        with self.assertRaises(NetworkError) as ctx:
            self.client.tokens.refresh()

        self.assertTrue(ctx.exception.message.startswith("Network request failed during authentication"))
        post_mock.assert_called_once()

    @patch("helpscout_cli.client.requests.post")
    def test_refresh_grant_transport_failure_falls_back(self, post_mock: Any) -> None:
        self.configure_app(access_token=None)
        self.store.set(REFRESH_TOKEN_ACCOUNT, "refresh")
        post_mock.side_effect = [
            requests.Timeout("timed out"),
            _response(200, {"access_token": "from-credentials"}),
        ]

        with redirect_stderr(StringIO()):
            token = self.client.tokens.refresh()

        self.assertEqual(token, "from-credentials")
        grants = [c.kwargs["data"]["grant_type"] for c in post_mock.call_args_list]
        self.assertEqual(grants, ["refresh_token", "client_credentials"])

    @patch("helpscout_cli.client.requests.post")
    def test_rejected_client_credentials_produce_auth_envelope(self, post_mock: Any) -> None:
        self.configure_app(access_token=None)
        post_mock.return_value = _response(
            401, {"error": "invalid_client", "error_description": "Bad client_secret=shh"}
        )

        with self.assertRaises(ApiError) as ctx:
            self.client.tokens.refresh()

        self.assertEqual(
            classify_error(ctx.exception),
            {"error": {"name": "invalid_client", "detail": "Bad [REDACTED]", "statusCode": 401}},
        )

    @patch("helpscout_cli.client.requests.post")
    def test_token_response_without_access_token_is_rejected(self, post_mock: Any) -> None:
        self.configure_app(access_token=None)
        post_mock.return_value = _response(200, {"token_type": "bearer"})

        with self.assertRaises(ApiError) as ctx:
            self.client.tokens.refresh()

        self.assertEqual(ctx.exception.api_error["error"], "invalid_token_response")

    @patch("helpscout_cli.client.requests.post")
    def test_rejection_after_concurrent_refresh_reuses_new_token(self, post_mock: Any) -> None:
        self.configure_app()
        self.client.tokens._access_token = "already-refreshed"

        token = self.client.tokens.refresh_after_rejection("old-token")

        self.assertEqual(token, "already-refreshed")
        post_mock.assert_not_called()

    def test_clear_removes_stored_tokens(self) -> None:
        self.configure_app()
        self.store.set(REFRESH_TOKEN_ACCOUNT, "refresh")

        self.client.tokens.clear()

        self.assertFalse(self.client.tokens.is_authenticated())
        self.assertIsNone(self.store.get(REFRESH_TOKEN_ACCOUNT))
        self.assertTrue(self.client.tokens.is_configured())


class PaginationTests(ClientTestCase):
    def test_list_all_follows_every_page(self) -> None:
        pages = []

        def fetch(page: int) -> Dict[str, Any]:
            pages.append(page)
            return {"tags": [{"id": page}], "page": {"number": page, "totalPages": 3}}

        items = self.client.list_all(fetch, "tags")

        self.assertEqual(pages, [1, 2, 3])
        self.assertEqual(items, [{"id": 1}, {"id": 2}, {"id": 3}])

    def test_list_all_with_zero_pages_fetches_once(self) -> None:
        fetch = MagicMock(return_value={"tags": [], "page": {"number": 1, "totalPages": 0}})

        self.assertEqual(self.client.list_all(fetch, "tags"), [])
        fetch.assert_called_once_with(1)

    def test_list_all_without_page_info_fetches_once(self) -> None:
        fetch = MagicMock(return_value={"tags": [{"id": 1}], "page": None})

        self.assertEqual(self.client.list_all(fetch, "tags"), [{"id": 1}])
        fetch.assert_called_once_with(1)

    @patch("helpscout_cli.client.requests.request")
    def test_list_tolerates_malformed_embedded(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.return_value = _response(200, {"_embedded": ["x"]})

        self.assertEqual(self.client.list_mailboxes(), {"mailboxes": [], "page": None})

    @patch("helpscout_cli.client.requests.request")
    def test_list_unwraps_embedded_collection(self, request_mock: Any) -> None:
        self.configure_app()
        page = {"size": 50, "totalElements": 1, "totalPages": 1, "number": 1}
        request_mock.return_value = _response(
            200, {"_embedded": {"mailboxes": [{"id": 1, "name": "Support"}]}, "page": page}
        )

        result = self.client.list_mailboxes()

        self.assertEqual(result, {"mailboxes": [{"id": 1, "name": "Support"}], "page": page})


class ConversationTagTests(ClientTestCase):
    @patch("helpscout_cli.client.requests.request")
    def test_remove_tag_writes_remaining_tags(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [
            _response(200, {"id": 5, "tags": [{"id": 1, "tag": "a"}, {"id": 2, "tag": "b"}]}),
            _response(204),
        ]

        self.client.remove_conversation_tag(5, "b")

        put_call = request_mock.call_args_list[1]
        self.assertEqual(put_call.args, ("PUT", "https://api.helpscout.net/v2/conversations/5/tags"))
        self.assertEqual(put_call.kwargs["json"], {"tags": ["a"]})

    @patch("helpscout_cli.client.requests.request")
    def test_add_tag_does_not_duplicate(self, request_mock: Any) -> None:
        self.configure_app()
        request_mock.side_effect = [
            _response(200, {"id": 5, "tags": [{"id": 1, "tag": "vip"}]}),
            _response(204),
        ]

        self.client.add_conversation_tag(5, "vip")

        self.assertEqual(request_mock.call_args_list[1].kwargs["json"], {"tags": ["vip"]})


class RetryAfterTests(unittest.TestCase):
    def test_retry_after_parsing(self) -> None:
        self.assertEqual(hs_client.retry_after_seconds(None), 60)
        self.assertEqual(hs_client.retry_after_seconds("5"), 5)
        self.assertEqual(hs_client.retry_after_seconds("soon"), 60)
        self.assertEqual(hs_client.retry_after_seconds("9999"), 120)
        self.assertEqual(hs_client.retry_after_seconds("-3"), 0)


if __name__ == "__main__":
    unittest.main()
