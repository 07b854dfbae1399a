# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own in-memory SQLite DB (StaticPool, one connection)
# - Schema + registry seed come from init_db, same as production
# - Services are driven inside atomic(db), exactly like the routers do
# ---------------------------------------------------------------------
from __future__ import annotations

import itertools
import os

# must be set before hospital_ledger.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy.pool import StaticPool

from hospital_ledger.db.init_db import init_db
from hospital_ledger.db.session import atomic, make_engine, make_session_factory
from hospital_ledger.models.patient import Patient
from hospital_ledger.services import catalogue, stock_ledger, vendors

_seq = itertools.count(1)


@pytest.fixture()
def engine():
    eng = make_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


# ---------- catalogue helpers ----------
def _count_in(db, ref, stock):
    # shelf stock counted in by adjustment: stock moves, no money is posted
    if stock:
        stock_ledger.adjust_stock(db, ref=ref, quantity=stock, notes="Counted in")


@pytest.fixture()
def make_frame(db):
    def _make(stock: int = 5, selling="500", cost="300", **extra):
        n = next(_seq)
        fields = {
            "sku": f"FR-{n:04d}",
            "brand": "Ray-Ban",
            "model": f"RB{n}",
            "purchase_price": cost,
            "selling_price": selling,
        }
        fields.update(extra)
        with atomic(db):
            h = catalogue.create_item(db, kind="frame", fields=fields)
            _count_in(db, h.ref, stock)
        return h.ref
    return _make


@pytest.fixture()
def make_lens(db):
    def _make(stock: int = 10, price="800", **extra):
        n = next(_seq)
        fields = {"name": f"Single Vision {n}", "type": "single_vision", "price": price}
        fields.update(extra)
        with atomic(db):
            h = catalogue.create_item(db, kind="lens", fields=fields)
            _count_in(db, h.ref, stock)
        return h.ref
    return _make


@pytest.fixture()
def make_vendor(db):
    def _make(opening="0", balance_type: str = "due", name: str = None):
        with atomic(db):
            v = vendors.create_vendor(
                db,
                name=name or f"Vision Supplies {next(_seq)}",
                opening_balance=opening,
                balance_type=balance_type,
            )
        return v.id
    return _make


@pytest.fixture()
def patient(db):
    with atomic(db):
        p = Patient(name="Rahima Begum", phone="01711000000", email="rahima@example.com")
        db.add(p)
        db.flush()
        pid = p.id
    return pid
