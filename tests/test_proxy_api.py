"""API tests for the proxy routes and /health, with the upstream mocked by httpx.MockTransport."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import json
import unittest
from unittest.mock import MagicMock

import httpx
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.proxy import get_upstream_client
from app.core.database import get_db
from app.core.security import create_access_token
from app.main import app
from app.models import Base, User
from app.scripts.create_user import create_user
from app.services.upstream import UpstreamClient

UPSTREAM_URL = "http://upstream.test"


class ProxyApiTestCase(unittest.TestCase):
    """In-memory credential store plus a recording mock upstream."""

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        self.requests: list[httpx.Request] = []
        self.upstream_handler = lambda request: httpx.Response(200, json={"ok": True})

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.upstream_handler(request)

        self.transport = httpx.MockTransport(handler)
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_upstream_client] = lambda: UpstreamClient(
            UPSTREAM_URL, api_key="service-key", transport=self.transport
        )
        self.client = TestClient(app)

        self.allowed = self._create_user("allowed@example.com", is_allowed=True)
        self.pending = self._create_user("pending@example.com")
        self.admin = self._create_user("admin@example.com", role="admin")

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def _create_user(self, email: str, role: str = "user", is_allowed: bool = False) -> User:
        db = self.Session()
        try:
            return create_user(db, email, "secret1", role=role, is_allowed=is_allowed)
        finally:
            db.close()

    def _auth(self, user: User) -> dict[str, str]:
        token = create_access_token(sub=user.id, email=user.email)
        return {"Authorization": f"Bearer {token}"}


class TestProxyAccessGate(ProxyApiTestCase):
    def test_upload_without_auth_is_unauthorized(self) -> None:
        resp = self.client.post("/upload", files={"file": ("a.pdf", b"%PDF", "application/pdf")})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"]["code"], "UNAUTHORIZED")
        self.assertEqual(self.requests, [])

    def test_query_not_allowed_is_access_denied(self) -> None:
        resp = self.client.post(
            "/query",
            json={"file_id": "f1", "question": "Revenue?"},
            headers=self._auth(self.pending),
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["code"], "ACCESS_DENIED")
        self.assertEqual(self.requests, [])

    def test_unapproved_admin_is_denied(self) -> None:
        resp = self.client.get("/documents", headers=self._auth(self.admin))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["code"], "ACCESS_DENIED")


class TestProxyForwarding(ProxyApiTestCase):
    def test_route_forwarded_verbatim_with_api_key(self) -> None:
        self.upstream_handler = lambda r: httpx.Response(200, json={"intent": "edgar"})
        resp = self.client.post(
            "/route", json={"command": "AAPL 10-K"}, headers=self._auth(self.allowed)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"intent": "edgar"})
        sent = self.requests[0]
        self.assertEqual(sent.method, "POST")
        self.assertEqual(str(sent.url), f"{UPSTREAM_URL}/route")
        self.assertEqual(json.loads(sent.content), {"command": "AAPL 10-K"})
        self.assertEqual(sent.headers["x-api-key"], "service-key")
        self.assertNotIn("authorization", sent.headers)

    def test_query_injects_caller_user_id(self) -> None:
        resp = self.client.post(
            "/query",
            json={"file_id": "f1", "question": "Revenue?", "user_id": "someone-else"},
            headers=self._auth(self.allowed),
        )
        self.assertEqual(resp.status_code, 200)
        body = json.loads(self.requests[0].content)
        self.assertEqual(body["user_id"], str(self.allowed.id))
        self.assertEqual(body["question"], "Revenue?")

    def test_upload_repackaged_as_multipart_with_user_id(self) -> None:
        resp = self.client.post(
            "/upload",
            files={"file": ("report.pdf", b"%PDF-1.4 data", "application/pdf")},
            data={"metadata": '{"company": "ACME"}'},
            headers=self._auth(self.allowed),
        )
        self.assertEqual(resp.status_code, 200)
        sent = self.requests[0]
        self.assertTrue(sent.headers["content-type"].startswith("multipart/form-data"))
        body = sent.content
        self.assertIn(b'name="file"; filename="report.pdf"', body)
        self.assertIn(b"%PDF-1.4 data", body)
        self.assertIn(b'name="user_id"', body)
        self.assertIn(str(self.allowed.id).encode(), body)
        self.assertIn(b'name="metadata"', body)
        self.assertIn(b'{"company": "ACME"}', body)

    def test_page_preview_binary_passthrough(self) -> None:
        png = b"\x89PNG\r\n\x1a\nbinary"
        self.upstream_handler = lambda r: httpx.Response(
            200, content=png, headers={"content-type": "image/png"}
        )
        resp = self.client.get("/pages/f1/3/preview", headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.content, png)
        self.assertEqual(resp.headers["content-type"], "image/png")
        self.assertEqual(self.requests[0].url.path, "/pages/f1/3/preview")

    def test_edgar_query_params_pass_through(self) -> None:
        resp = self.client.get(
            "/edgar/AAPL?form=10-K&year=2023", headers=self._auth(self.allowed)
        )
        self.assertEqual(resp.status_code, 200)
        sent = self.requests[0]
        self.assertEqual(sent.url.path, "/edgar/AAPL")
        self.assertEqual(sent.url.params["form"], "10-K")
        self.assertEqual(sent.url.params["year"], "2023")

    def test_other_routes_forward_method_and_path(self) -> None:
        headers = self._auth(self.allowed)
        cases = [
            ("GET", "/status/f1", "/status/f1"),
            ("GET", "/pages/f1", "/pages/f1"),
            ("GET", "/documents?company=ACME", "/documents"),
            ("GET", "/filters", "/filters"),
            ("DELETE", "/files/f1", "/files/f1"),
        ]
        for method, url, upstream_path in cases:
            resp = self.client.request(method, url, headers=headers)
            self.assertEqual(resp.status_code, 200, url)
            sent = self.requests[-1]
            self.assertEqual(sent.method, method)
            self.assertEqual(sent.url.path, upstream_path)
        self.assertEqual(self.requests[2].url.params["company"], "ACME")

    def test_extract_forwarded(self) -> None:
        resp = self.client.post(
            "/extract", json={"file_id": "f1", "pages": [1, 2]}, headers=self._auth(self.allowed)
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(json.loads(self.requests[0].content), {"file_id": "f1", "pages": [1, 2]})

    def test_route_and_extract_without_body_forward_empty_object(self) -> None:
        for path in ("/route", "/extract"):
            resp = self.client.post(path, headers=self._auth(self.allowed))
            self.assertEqual(resp.status_code, 200, path)
            self.assertEqual(json.loads(self.requests[-1].content), {})


class TestProxyErrorTranslation(ProxyApiTestCase):
    def test_upstream_error_status_and_body_relayed(self) -> None:
        self.upstream_handler = lambda r: httpx.Response(
            404, json={"detail": "File not found"}
        )
        resp = self.client.get("/status/missing", headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"detail": "File not found"})

    def test_upstream_error_with_empty_body(self) -> None:
        self.upstream_handler = lambda r: httpx.Response(500)
        resp = self.client.get("/filters", headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {})

    def test_redirect_location_relayed(self) -> None:
        self.upstream_handler = lambda r: httpx.Response(
            302, headers={"Location": "/documents?page=2"}
        )
        resp = self.client.get(
            "/documents", headers=self._auth(self.allowed), follow_redirects=False
        )
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp.headers["location"], "/documents?page=2")
        self.assertEqual(len(self.requests), 1)

    def test_unreachable_upstream_is_bad_gateway(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        self.upstream_handler = refuse
        resp = self.client.post("/route", json={"command": "x"}, headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"]["code"], "BAD_GATEWAY")

    def test_timeout_is_bad_gateway(self) -> None:
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        self.upstream_handler = slow
        resp = self.client.post(
            "/query", json={"question": "q"}, headers=self._auth(self.allowed)
        )
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(len(self.requests), 1)

    def test_unconfigured_upstream_is_bad_gateway(self) -> None:
        app.dependency_overrides[get_upstream_client] = lambda: UpstreamClient(None)
        resp = self.client.get("/documents", headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"]["code"], "BAD_GATEWAY")

    def test_unexpected_error_is_server_error(self) -> None:
        def broken() -> UpstreamClient:
            raise RuntimeError("boom")

        app.dependency_overrides[get_upstream_client] = broken
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.get("/documents", headers=self._auth(self.allowed))
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"]["code"], "SERVER_ERROR")


class TestHealth(ProxyApiTestCase):
    def test_health_connected(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["status"], "ok")
        self.assertEqual(data["mongodb"], "connected")
        self.assertEqual(data["database"], "connected")
        self.assertTrue(data["service"])

    def test_health_disconnected(self) -> None:
        db = MagicMock()
        db.execute.side_effect = Exception("connection refused")
        app.dependency_overrides[get_db] = lambda: db
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["mongodb"], "disconnected")
        self.assertEqual(resp.json()["database"], "disconnected")


if __name__ == "__main__":
    unittest.main()
