"""
Shared fixtures for the API tests.

Environment is pinned before anything under app/ is imported so settings and
the module-level engine pick it up. Each test gets its own in-memory SQLite
database (StaticPool keeps the single connection alive across sessions).
"""

import os
import unittest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.db import Base, get_db, make_engine, make_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.services.food_source import get_food_source  # noqa: E402
from app.services.recommendations import get_recommender  # noqa: E402


class FakeFoodSource:
    def __init__(self, items=None, error=None):
        self.items = list(items or [])
        self.error = error
        self.calls = []

    def fetch(self, query, limit=20):
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        return [dict(item) for item in self.items][:limit]


class FakeRecommender:
    def __init__(self, result=None, error=None):
        self.result = result if result is not None else []
        self.error = error
        self.contexts = []

    def recommend(self, context):
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.result


class ApiTestCase(unittest.TestCase):
    user_id = "user-1"

    def setUp(self) -> None:
        self.engine = make_engine("sqlite://", poolclass=StaticPool)
        Base.metadata.create_all(bind=self.engine)
        self.Session = make_session_factory(self.engine)

        self.food_source = FakeFoodSource()
        self.recommender = FakeRecommender()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_food_source] = lambda: self.food_source
        app.dependency_overrides[get_recommender] = lambda: self.recommender
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.client.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def headers(self, user_id=None):
        return {"X-User-Id": user_id or self.user_id}

    def get(self, path, user_id=None, **kwargs):
        return self.client.get(path, headers=self.headers(user_id), **kwargs)

    def post(self, path, json=None, user_id=None, **kwargs):
        return self.client.post(path, json=json, headers=self.headers(user_id), **kwargs)

    def put(self, path, json=None, user_id=None, **kwargs):
        return self.client.put(path, json=json, headers=self.headers(user_id), **kwargs)

    def delete(self, path, user_id=None, **kwargs):
        return self.client.delete(path, headers=self.headers(user_id), **kwargs)

    def data(self, resp, status=200):
        self.assertEqual(resp.status_code, status, resp.text)
        body = resp.json()
        self.assertEqual(body["status"], "ok")
        return body["data"]

    def assertError(self, resp, status, code):
        self.assertEqual(resp.status_code, status, resp.text)
        body = resp.json()
        self.assertEqual(body["status"], "error")
        self.assertEqual(body["code"], code)
        return body
