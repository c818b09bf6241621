import json
import os
import unittest
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.v1.expenses import get_agent_factory
from app.core.auth import CurrentUser, get_current_user
from app.core.dependencies import get_db
from app.main import app
from app.models.expense import Base, Expense
from app.services.ai.common.providers.mock import MockProvider
from app.services.ai.expense_extract.service import ExpenseExtractionAgent

TEST_JWT_SECRET = "test-secret-with-at-least-thirty-two-bytes!!"


def _make_token(sub: str, *, expires_in: int = 3600, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        **claims,
    }
    token = jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def auth_header(sub: str, **claims) -> dict:
    return {"Authorization": f"Bearer {_make_token(sub, **claims)}"}


class _ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        self.current_user = CurrentUser(id=str(uuid.uuid4()))
        self.provider = MockProvider()

        def override_get_current_user():
            return self.current_user

        def override_agent_factory():
            return lambda **_: ExpenseExtractionAgent(self.provider)

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = override_get_current_user
        app.dependency_overrides[get_agent_factory] = override_agent_factory
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()


class ExtractEndpointTests(_ApiTestCase):
    def test_fallback_result_is_persisted(self):
        resp = self.client.post("/api/v1/expenses/extract", json={"text": "almoço 35,50 e uber 20"})
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()

        self.assertTrue(data["success"])
        self.assertEqual(data["data"]["source"], "heuristic")
        self.assertEqual(data["data"]["confidence"], 0.4)
        self.assertEqual(data["data"]["summary"]["total_expenses"], 2)
        self.assertEqual(data["data"]["summary"]["total_amount"], 55.5)
        self.assertEqual(
            [e["category"] for e in data["data"]["expenses"]],
            ["alimentação", "transporte"],
        )
        self.assertTrue(data["request_id"])

        db = self.SessionLocal()
        try:
            rows = db.query(Expense).all()
            self.assertEqual(len(rows), 2)
            self.assertEqual({r.owner_id for r in rows}, {self.current_user.id})
        finally:
            db.close()

    def test_model_candidates_with_unknown_category_are_skipped(self):
        self.provider.response_text = json.dumps(
            {
                "expenses": [
                    {"description": "Café", "amount": 5.5, "category": "Restaurante", "confidence": 0.9},
                    {"description": "Livro", "amount": 40, "category": "books", "confidence": 0.7},
                ]
            }
        )
        resp = self.client.post("/api/v1/expenses/extract", json={"text": "café 5,50 e livro 40"})
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]

        self.assertEqual(data["source"], "model")
        self.assertEqual(len(data["expenses"]), 1)
        self.assertEqual(data["expenses"][0]["category"], "restaurante")
        self.assertEqual(data["skipped"], 1)
        # Summary describes the extraction, not what was stored.
        self.assertEqual(data["summary"]["total_expenses"], 2)
        self.assertEqual(data["confidence"], 0.8)

    def test_empty_text_returns_400(self):
        resp = self.client.post("/api/v1/expenses/extract", json={"text": "   "})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("empty", resp.json()["detail"])

    def test_overflowing_amount_is_not_extracted(self):
        text = "almoço " + "9" * 400 + " e uber 20"
        resp = self.client.post("/api/v1/expenses/extract", json={"text": text})
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]

        self.assertEqual(data["summary"]["total_expenses"], 1)
        self.assertEqual(data["summary"]["total_amount"], 20.0)
        self.assertEqual([e["amount"] for e in data["expenses"]], [20.0])
        self.assertEqual(data["skipped"], 0)

    def test_no_amounts_returns_empty_success(self):
        resp = self.client.post("/api/v1/expenses/extract", json={"text": "bom dia"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["expenses"], [])
        self.assertEqual(data["summary"], {"total_expenses": 0, "total_amount": 0.0, "categories": []})


class ExpenseCrudEndpointTests(_ApiTestCase):
    def _create(self, **fields):
        body = {"description": "Uber", "amount": 20, "category": "Transporte", "currency": "BRL"}
        body.update(fields)
        return self.client.post("/api/v1/expenses", json=body)

    def test_create_and_get(self):
        resp = self._create()
        self.assertEqual(resp.status_code, 201, resp.text)
        created = resp.json()
        self.assertEqual(created["category"], "transporte")

        resp = self.client.get(f"/api/v1/expenses/{created['id']}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["amount"], 20.0)

    def test_create_invalid_category_returns_400(self):
        resp = self._create(category="gadgets")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Valid categories", resp.json()["detail"])

    def test_other_owner_gets_404(self):
        created = self._create().json()
        self.current_user = CurrentUser(id=str(uuid.uuid4()))
        resp = self.client.get(f"/api/v1/expenses/{created['id']}")
        self.assertEqual(resp.status_code, 404)

    def test_list_update_delete_and_summary(self):
        self._create()
        second = self._create(description="Cinema", amount=30, category="lazer").json()

        resp = self.client.get("/api/v1/expenses", params={"category": "lazer"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["count"], 1)

        resp = self.client.patch(f"/api/v1/expenses/{second['id']}", json={"amount": 25})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["amount"], 25.0)

        resp = self.client.patch(f"/api/v1/expenses/{second['id']}", json={"category": "nope"})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.get("/api/v1/expenses/summary")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["total_expenses"], 2)
        self.assertEqual(resp.json()["total_amount"], 45.0)

        resp = self.client.delete(f"/api/v1/expenses/{second['id']}")
        self.assertEqual(resp.status_code, 204)
        resp = self.client.delete(f"/api/v1/expenses/{second['id']}")
        self.assertEqual(resp.status_code, 404)

    def test_categories(self):
        resp = self.client.get("/api/v1/expenses/categories")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["default"], "outros")
        self.assertEqual(len(resp.json()["categories"]), 13)

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")


class BearerAuthTests(unittest.TestCase):
    """get_current_user against real HS256 tokens."""

    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        SessionLocal = sessionmaker(bind=self.engine)

        def override_get_db():
            db = SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    @patch.dict(os.environ, {"JWT_SECRET": TEST_JWT_SECRET, "JWT_AUDIENCE": ""}, clear=False)
    def test_valid_token_scopes_expenses(self):
        resp = self.client.get("/api/v1/expenses", headers=auth_header("user-1"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["count"], 0)

    @patch.dict(os.environ, {"JWT_SECRET": TEST_JWT_SECRET, "JWT_AUDIENCE": ""}, clear=False)
    def test_missing_token_returns_401(self):
        resp = self.client.get("/api/v1/expenses")
        self.assertEqual(resp.status_code, 401)

    @patch.dict(os.environ, {"JWT_SECRET": TEST_JWT_SECRET, "JWT_AUDIENCE": ""}, clear=False)
    def test_expired_token_returns_401(self):
        resp = self.client.get("/api/v1/expenses", headers=auth_header("user-1", expires_in=-60))
        self.assertEqual(resp.status_code, 401)

    @patch.dict(os.environ, {"JWT_SECRET": TEST_JWT_SECRET, "JWT_AUDIENCE": "authenticated"}, clear=False)
    def test_audience_is_enforced(self):
        resp = self.client.get("/api/v1/expenses", headers=auth_header("user-1"))
        self.assertEqual(resp.status_code, 401)
        resp = self.client.get("/api/v1/expenses", headers=auth_header("user-1", aud="authenticated"))
        self.assertEqual(resp.status_code, 200)

    @patch.dict(
        os.environ,
        {"JWT_SECRET": "", "JWT_AUDIENCE": "", "SUPABASE_JWT_SECRET": TEST_JWT_SECRET},
        clear=False,
    )
    def test_only_jwt_secret_variable_is_read(self):
        from app.core.config import get_settings

        self.assertEqual(get_settings().jwt_secret, "")
        resp = self.client.get("/api/v1/expenses", headers=auth_header("user-1"))
        self.assertEqual(resp.status_code, 500)
