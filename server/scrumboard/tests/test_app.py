import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from scrumboard.app import create_app
from scrumboard.config import Settings
from scrumboard.errors import BackendError
from scrumboard.provider import InMemoryBackend, SessionResult, SupabaseBackend

AUTH_ENDPOINTS = (
    "/api/auth/signup",
    "/api/auth/signin",
    "/api/auth/login-or-register",
)


def _client(backend) -> TestClient:
    settings = Settings(_env_file=None, spa_dir="does-not-exist")
    return TestClient(create_app(settings=settings, backend=backend))


class ScrumApiTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryBackend()
        self.client = _client(self.backend)

    def test_list_scrums_empty(self):
        response = self.client.get("/api/scrums")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"scrums": []})

    def test_create_scrum_returns_stored_record(self):
        response = self.client.post("/api/scrums", json={"title": "Daily"})
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["title"], "Daily")
        self.assertIn("id", payload)

        listed = self.client.get("/api/scrums").json()["scrums"]
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["id"], payload["id"])

    def test_create_scrum_from_form_body(self):
        response = self.client.post("/api/scrums", data={"title": "Retro"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["title"], "Retro")

    def test_create_scrum_rejects_malformed_json(self):
        response = self.client.post(
            "/api/scrums",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

    def test_create_scrum_rejects_non_object_json(self):
        response = self.client.post("/api/scrums", json=["Daily"])
        self.assertEqual(response.status_code, 400)

    def test_provider_errors_are_generalized(self):
        self.backend.fail_with = 'relation "scrums" does not exist'

        listed = self.client.get("/api/scrums")
        self.assertEqual(listed.status_code, 500)
        self.assertEqual(listed.json(), {"error": "Failed to retrieve scrum data."})

        created = self.client.post("/api/scrums", json={"title": "Daily"})
        self.assertEqual(created.status_code, 500)
        self.assertEqual(created.json(), {"error": "Failed to create new scrum."})

    def test_missing_configuration_is_a_server_error(self):
        client = _client(SupabaseBackend(url=None, key=None, admin_key=None))
        response = client.get("/api/scrums")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to retrieve scrum data."})

    def test_unexpected_scrum_failure_is_json(self):
        backend = MagicMock()
        backend.insert_scrum.side_effect = IndexError("list index out of range")
        response = _client(backend).post("/api/scrums", json={"title": "Daily"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to create new scrum."})

    def test_non_json_body_is_treated_as_empty(self):
        response = self.client.post(
            "/api/scrums",
            content=b"title=Daily",
            headers={"content-type": "text/plain"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertNotIn("title", response.json())

    def test_unknown_api_route_is_json_404(self):
        response = self.client.post("/api/nope", json={})
        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.json())

    def test_unknown_api_route_options_is_json_404(self):
        response = self.client.options("/api/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "API endpoint not found"})

    def test_cors_allows_any_origin(self):
        response = self.client.get(
            "/api/scrums", headers={"Origin": "https://board.example.com"}
        )
        self.assertEqual(response.headers["access-control-allow-origin"], "*")


class CredentialValidationTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryBackend()
        self.client = _client(self.backend)

    def test_missing_or_empty_fields_are_rejected(self):
        payloads = [
            {},
            {"email": "dev@example.com"},
            {"password": "hunter22"},
            {"email": "", "password": "hunter22"},
            {"email": "dev@example.com", "password": ""},
            {"email": None, "password": None},
        ]
        for endpoint in AUTH_ENDPOINTS:
            for payload in payloads:
                with self.subTest(endpoint=endpoint, payload=payload):
                    response = self.client.post(endpoint, json=payload)
                    self.assertEqual(response.status_code, 400)
                    self.assertIn("error", response.json())
        self.assertEqual(self.backend.calls, [])

    def test_error_names_missing_fields(self):
        response = self.client.post(
            "/api/auth/signup", json={"email": "dev@example.com"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("password", response.json()["error"])
        self.assertNotIn("email", response.json()["error"])

    def test_empty_body_is_rejected(self):
        response = self.client.post("/api/auth/signin")
        self.assertEqual(response.status_code, 400)

    def test_plain_text_body_reports_missing_fields(self):
        response = self.client.post(
            "/api/auth/signin",
            content=b"email=dev@example.com",
            headers={"content-type": "text/plain"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("email", response.json()["error"])


class MalformedConfigurationTests(unittest.TestCase):
    """A bad provider URL must still produce JSON error bodies."""

    def setUp(self):
        self.client = _client(
            SupabaseBackend(url="not-a-url", key="x.y.z", admin_key="x.y.z")
        )
        self.credentials = {"email": "dev@example.com", "password": "hunter22"}

    def test_scrum_endpoints(self):
        listed = self.client.get("/api/scrums")
        self.assertEqual(listed.status_code, 500)
        self.assertEqual(listed.json(), {"error": "Failed to retrieve scrum data."})

        created = self.client.post("/api/scrums", json={"title": "Daily"})
        self.assertEqual(created.status_code, 500)
        self.assertEqual(created.json(), {"error": "Failed to create new scrum."})

    def test_auth_endpoints(self):
        expected = {
            "/api/auth/signup": 400,
            "/api/auth/signin": 401,
            "/api/auth/login-or-register": 500,
        }
        for endpoint, status in expected.items():
            with self.subTest(endpoint=endpoint):
                response = self.client.post(endpoint, json=self.credentials)
                self.assertEqual(response.status_code, status)
                self.assertIn("error", response.json())


class SignUpSignInTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryBackend()
        self.client = _client(self.backend)
        self.credentials = {"email": "dev@example.com", "password": "hunter22"}

    def test_signup_pending_confirmation(self):
        response = self.client.post("/api/auth/signup", json=self.credentials)
        self.assertEqual(response.status_code, 202)
        self.assertIn("check your email", response.json()["message"])

    def test_signup_with_session(self):
        self.backend.auto_confirm = True
        response = self.client.post("/api/auth/signup", json=self.credentials)
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["user"]["email"], "dev@example.com")
        self.assertIsNotNone(payload["session"]["access_token"])

    def test_signup_duplicate_passes_provider_message(self):
        self.client.post("/api/auth/signup", json=self.credentials)
        response = self.client.post("/api/auth/signup", json=self.credentials)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "User already registered"})

    def test_signin_unconfirmed_account(self):
        self.client.post("/api/auth/signup", json=self.credentials)
        response = self.client.post("/api/auth/signin", json=self.credentials)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Email not confirmed"})

    def test_signin_after_confirmation(self):
        self.client.post("/api/auth/signup", json=self.credentials)
        self.backend.confirm_email("dev@example.com")
        response = self.client.post("/api/auth/signin", json=self.credentials)
        self.assertEqual(response.status_code, 200)
        token = response.json()["session"]["access_token"]
        self.assertEqual(
            self.backend.get_user_from_token(token)["email"], "dev@example.com"
        )

    def test_signin_wrong_password(self):
        self.backend.auto_confirm = True
        self.client.post("/api/auth/signup", json=self.credentials)
        response = self.client.post(
            "/api/auth/signin",
            json={"email": "dev@example.com", "password": "wrong"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid login credentials"})

    def test_signin_without_session_is_unauthorized(self):
        backend = MagicMock()
        backend.sign_in.return_value = SessionResult(user={"id": "u1"}, session=None)
        response = _client(backend).post("/api/auth/signin", json=self.credentials)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(), {"error": "Invalid credentials or user not confirmed."}
        )

    def test_signin_accepts_form_body(self):
        self.backend.auto_confirm = True
        self.client.post("/api/auth/signup", json=self.credentials)
        response = self.client.post("/api/auth/signin", data=self.credentials)
        self.assertEqual(response.status_code, 200)


class LoginOrRegisterTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryBackend(auto_confirm=True)
        self.client = _client(self.backend)

    def _post(self, email, password):
        return self.client.post(
            "/api/auth/login-or-register",
            json={"email": email, "password": password},
        )

    def test_existing_email_wrong_password_never_registers(self):
        self.backend.sign_up("Dev@Example.com", "hunter22")
        self.backend.calls.clear()

        response = self._post("dev@example.com", "wrong")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid login credentials"})
        self.assertNotIn("sign_up", self.backend.calls)
        self.assertEqual(len(self.backend.accounts), 1)

    def test_existing_email_logs_in(self):
        self.backend.sign_up("dev@example.com", "hunter22")
        response = self._post("DEV@example.com", "hunter22")
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()["session"])

    def test_new_email_requires_confirmation(self):
        self.backend.auto_confirm = False
        response = self._post("new@example.com", "hunter22")
        self.assertEqual(response.status_code, 202)
        payload = response.json()
        self.assertTrue(payload["requiresConfirmation"])
        self.assertNotIn("session", payload)
        self.assertIn("message", payload)

    def test_new_email_auto_confirmed(self):
        response = self._post("new@example.com", "hunter22")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertIsNotNone(payload["session"])
        self.assertEqual(payload["user"]["email"], "new@example.com")
        self.assertEqual(self.backend.calls, ["email_exists", "sign_up"])

    def test_registration_failure_is_bad_request(self):
        backend = MagicMock()
        backend.email_exists.return_value = False
        backend.sign_up.side_effect = BackendError(
            "Password should be at least 6 characters"
        )
        response = _client(backend).post(
            "/api/auth/login-or-register",
            json={"email": "new@example.com", "password": "abc"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"error": "Password should be at least 6 characters"}
        )

    def test_empty_provider_message_falls_back(self):
        backend = MagicMock()
        backend.email_exists.return_value = True
        backend.sign_in.side_effect = BackendError("")
        response = _client(backend).post(
            "/api/auth/login-or-register",
            json={"email": "dev@example.com", "password": "hunter22"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"error": "Invalid credentials."})

    def test_existence_check_failure_is_generic_server_error(self):
        self.backend.fail_with = "admin API unavailable"
        response = self._post("dev@example.com", "hunter22")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"error": "An unexpected server error occurred."}
        )


if __name__ == "__main__":
    unittest.main()
