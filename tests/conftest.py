from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np
import pytest

from visionscan.models.domain.detection import BackendCandidate, Detection, ExecutionDevice
from visionscan.services.backends.base import ClassifierBackend


# ==================== Classifier fakes ====================


class FakeBackend(ClassifierBackend):
    def __init__(self, model_id: str = "fake-model", device: str = "cpu", detections=None):
        self.model_id = model_id
        self.device = device
        self.detections = list(detections) if detections is not None else [
            Detection(label="laptop, laptop computer", score=0.82),
            Detection(label="computer keyboard, keypad", score=0.11),
        ]
        self.seen_shapes: List[tuple] = []

    def classify(self, image, top_k=5):
        self.seen_shapes.append((image.shape, image.dtype))
        return list(self.detections)


class ScriptedLoader:
    """
    Primary loader driven by a per-candidate outcome table.

    An outcome is an exception instance (raised) or a backend (returned).
    Candidates missing from the table raise RuntimeError.
    """

    def __init__(self, outcomes: Dict[str, object], gate: Optional[threading.Event] = None):
        self.outcomes = outcomes
        self.gate = gate
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, candidate: BackendCandidate) -> ClassifierBackend:
        with self._lock:
            self.calls.append(str(candidate))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        outcome = self.outcomes.get(str(candidate), RuntimeError(f"unexpected {candidate}"))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def candidate(model_id: str, device: str = "cpu") -> BackendCandidate:
    return BackendCandidate(model_id=model_id, device=ExecutionDevice(device))


@pytest.fixture
def rgb_image() -> np.ndarray:
    image = np.zeros((48, 64, 3), dtype=np.uint8)
    image[:, :32] = (200, 30, 30)
    return image


# ==================== Supabase fake ====================


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, table: "FakeTable", op: str, payload=None):
        self.table = table
        self.op = op
        self.payload = payload
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_n: Optional[int] = None

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def execute(self):
        if self.table.fail is not None:
            raise self.table.fail

        if self.op == "insert":
            row = self.table.new_row(self.payload)
            return FakeResponse([dict(row)])

        matched = [r for r in self.table.rows if all(r.get(c) == v for c, v in self.filters)]
        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(r) for r in matched])

        if self.order_by is not None:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_n is not None:
            matched = matched[:self.limit_n]
        return FakeResponse([dict(r) for r in matched])


class FakeTable:
    BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __init__(self, name: str):
        self.name = name
        self.rows: List[dict] = []
        self.fail: Optional[Exception] = None
        self._counter = 0

    def new_row(self, payload: dict) -> dict:
        self._counter += 1
        row = dict(payload)
        row.setdefault("id", f"{self.name}-{self._counter}")
        row.setdefault("created_at", (self.BASE_TIME + timedelta(seconds=self._counter)).isoformat())
        self.rows.append(row)
        return row

    def select(self, *_columns, **_kwargs):
        return FakeQuery(self, "select")

    def insert(self, payload):
        return FakeQuery(self, "insert", payload)

    def update(self, payload):
        return FakeQuery(self, "update", payload)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, FakeTable] = {}

    def table(self, name: str) -> FakeTable:
        return self.tables.setdefault(name, FakeTable(name))


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


# ==================== Auth ====================

TEST_JWT_SECRET = "test-jwt-secret"


def make_token(user_id: str = "user-1", email: str = "user@example.com") -> str:
    from jose import jwt

    return jwt.encode({"sub": user_id, "email": email, "role": "authenticated"}, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def jwt_secret(monkeypatch) -> str:
    from visionscan.core.config import settings

    monkeypatch.setattr(settings, "supabase_jwt_secret", TEST_JWT_SECRET)
    return TEST_JWT_SECRET


def auth_headers(user_id: str = "user-1") -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
