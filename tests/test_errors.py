import json
import typing
import unittest
from contextlib import redirect_stdout
from io import StringIO

from helpscout_cli import errors
from helpscout_cli.output import OutputOptions


class SanitizeTests(unittest.TestCase):
    def test_bearer_token_is_redacted(self) -> None:
        self.assertEqual(
            errors.sanitize_error_message("Request failed with Bearer abc123.def"),
            "Request failed with [REDACTED]",
        )

    def test_secret_and_token_patterns_are_redacted(self) -> None:
        message = errors.sanitize_error_message("client_secret=shh&refresh_token=abc")
        self.assertNotIn("shh", message)
        self.assertNotIn("abc", message)
        self.assertIn(errors.REDACTED, message)

    def test_long_messages_are_truncated(self) -> None:
        message = errors.sanitize_error_message("x" * 600)
        self.assertEqual(len(message), errors.MAX_DETAIL_LENGTH + 3)
        self.assertTrue(message.endswith("..."))

    def test_oauth_error_body(self) -> None:
        info = errors.sanitize_api_error({"error": "invalid_client", "error_description": "Bad client"})
        self.assertEqual(info, {"name": "invalid_client", "detail": "Bad client"})

    def test_validation_error_body(self) -> None:
        body = {"_embedded": {"errors": [{"path": "emails", "message": "must be valid"}, {"path": "phones"}]}}
        info = errors.sanitize_api_error(body)
        self.assertEqual(info, {"name": "api_error", "detail": "must be valid; phones"})

    def test_non_object_body(self) -> None:
        self.assertEqual(errors.sanitize_api_error("oops"), {"name": "api_error", "detail": "An error occurred"})


class ClassifyTests(unittest.TestCase):
    def test_rate_limit_envelope_has_hint(self) -> None:
        exc = errors.ApiError("API request failed", {"error": "too_many_requests", "message": "Slow down"}, 429)
        envelope = errors.classify_error(exc)
        self.assertEqual(
            envelope["error"], {"name": "too_many_requests", "detail": "Slow down", "statusCode": 429}
        )
        self.assertEqual(envelope["hint"], errors.RATE_LIMIT_HINT)

    def test_other_api_errors_have_no_hint(self) -> None:
        exc = errors.ApiError("API request failed", {"error": "not_found", "message": "Missing"}, 404)
        envelope = errors.classify_error(exc)
        self.assertEqual(envelope["error"]["statusCode"], 404)
        self.assertNotIn("hint", envelope)

    def test_cli_errors_keep_their_status(self) -> None:
        envelope = errors.classify_error(errors.ValidationError('Invalid conversation ID: "abc"'))
        self.assertEqual(
            envelope,
            {"error": {"name": "cli_error", "detail": 'Invalid conversation ID: "abc"', "statusCode": 400}},
        )

    def test_network_error_status_falls_back_to_one(self) -> None:
        envelope = errors.classify_error(errors.NetworkError("Network request failed: refused"))
        self.assertEqual(envelope["error"]["statusCode"], 1)

    def test_unexpected_errors_are_redacted(self) -> None:
        envelope = errors.classify_error(RuntimeError("boom Bearer secret-token"))
        self.assertEqual(envelope["error"]["name"], "unknown_error")
        self.assertEqual(envelope["error"]["detail"], "boom [REDACTED]")
        self.assertEqual(envelope["error"]["statusCode"], 1)


class HandleErrorTests(unittest.TestCase):
    def test_envelope_printed_on_stdout_and_exit_non_zero(self) -> None:
        buf = StringIO()
        with redirect_stdout(buf):
            with self.assertRaises(SystemExit) as ctx:
                errors.handle_error(errors.ConfigurationError(), OutputOptions(compact=True, fields="id"))

        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(
            json.loads(buf.getvalue()),
            {
                "error": {
                    "name": "cli_error",
                    "detail": "Not configured. Please run: helpscout auth login",
                    "statusCode": 401,
                }
            },
        )
        self.assertEqual(len(buf.getvalue().strip().splitlines()), 1)

    def test_declared_as_never_returning(self) -> None:
        self.assertIs(typing.get_type_hints(errors.handle_error)["return"], typing.NoReturn)


if __name__ == "__main__":
    unittest.main()
