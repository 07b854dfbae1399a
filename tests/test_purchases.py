from decimal import Decimal

import pytest

from hospital_ledger.core.config import settings
from hospital_ledger.db.session import atomic
from hospital_ledger.models.inventory import StockMovement
from hospital_ledger.models.purchase import OpticsPurchase
from hospital_ledger.models.vendor import OpticsVendor
from hospital_ledger.schemas.optics_purchase import PurchaseCreate, PurchasePayDue, PurchaseUpdate
from hospital_ledger.services import hospital_account, purchases, shop_account, stock_ledger, stock_management
from hospital_ledger.services.errors import (
    InsufficientStockError,
    InvalidOperationError,
    OverpaymentError,
)
from hospital_ledger.services.items import resolve


def _buy(db, ref, *, vendor_id=None, qty=10, unit="100", paid="0"):
    with atomic(db):
        p = purchases.create_purchase(
            db,
            PurchaseCreate(
                vendor_id=vendor_id,
                item_type=ref.kind.value,
                item_id=ref.id,
                quantity=qty,
                unit_cost=unit,
                paid_amount=paid,
            ),
            user_id=3,
        )
        return p.id


def _vendor_state(db, vendor_id):
    v = db.get(OpticsVendor, vendor_id)
    db.refresh(v)
    return v.current_balance, v.balance_type


def _recognized(db, purchase_id):
    return hospital_account.recognized_for_source(db, "optics_purchase", purchase_id)


def test_vendor_purchase_splits_paid_and_due(db, make_frame, make_vendor):
    ref = make_frame(stock=2)
    vid = make_vendor()

    pid = _buy(db, ref, vendor_id=vid, qty=10, unit="100", paid="300")

    p = purchases.get_purchase(db, pid)
    assert (p.total_cost, p.paid_amount, p.due_amount) == (Decimal("1000.00"), Decimal("300.00"), Decimal("700.00"))
    assert p.payment_status == "partial"
    assert p.purchase_no.startswith("GP-")
    assert resolve(db, ref).stock == 12

    owned = db.query(StockMovement).filter(StockMovement.purchase_id == pid).all()
    assert [(m.movement_type, m.quantity, m.total_amount) for m in owned] == [("purchase", 10, Decimal("1000.00"))]

    assert _vendor_state(db, vid) == (Decimal("700.00"), "due")
    hosp = hospital_account.entries_for(db, "optics_purchase", pid)
    assert [(t.type, t.amount, t.category) for t in hosp] == [
        ("expense", Decimal("300.00"), settings.OPTICS_PURCHASE_CATEGORY)
    ]
    assert p.hospital_transaction_id == hosp[0].id


def test_purchase_without_vendor_is_paid_in_full(db, make_lens):
    ref = make_lens(stock=0)
    pid = _buy(db, ref, qty=4, unit="250", paid="0")

    p = purchases.get_purchase(db, pid)
    assert (p.paid_amount, p.due_amount, p.payment_status) == (Decimal("1000.00"), Decimal("0.00"), "paid")
    assert _recognized(db, pid) == Decimal("-1000.00")


def test_unpaid_vendor_purchase_touches_only_vendor(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor()
    pid = _buy(db, ref, vendor_id=vid, qty=2, unit="500", paid="0")

    p = purchases.get_purchase(db, pid)
    assert p.payment_status == "pending"
    assert p.hospital_transaction_id is None
    assert hospital_account.entries_for(db, "optics_purchase", pid) == []
    assert _vendor_state(db, vid) == (Decimal("1000.00"), "due")


def test_vendor_advance_absorbs_new_purchase(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor(opening="300", balance_type="advance")
    _buy(db, ref, vendor_id=vid, qty=2, unit="100")
    assert _vendor_state(db, vid) == (Decimal("100.00"), "advance")


def test_paid_above_total_is_rejected(db, make_frame, make_vendor):
    ref = make_frame(stock=1)
    vid = make_vendor()
    with pytest.raises(OverpaymentError):
        _buy(db, ref, vendor_id=vid, qty=1, unit="100", paid="150")
    assert resolve(db, ref).stock == 1
    assert db.query(OpticsPurchase).count() == 0


def test_pay_due_moves_vendor_and_hospital(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor()
    pid = _buy(db, ref, vendor_id=vid, qty=10, unit="100", paid="300")

    with atomic(db):
        purchases.pay_due(db, pid, PurchasePayDue(amount="200"), user_id=3)

    p = purchases.get_purchase(db, pid)
    assert (p.paid_amount, p.due_amount, p.payment_status) == (Decimal("500.00"), Decimal("500.00"), "partial")
    assert _vendor_state(db, vid) == (Decimal("500.00"), "due")
    last = hospital_account.entries_for(db, "optics_purchase", pid)[-1]
    assert (last.type, last.amount, last.category) == (
        "expense", Decimal("200.00"), settings.OPTICS_VENDOR_PAYMENT_CATEGORY
    )

    with pytest.raises(OverpaymentError):
        with atomic(db):
            purchases.pay_due(db, pid, PurchasePayDue(amount="600"), user_id=3)

    with atomic(db):
        purchases.pay_due(db, pid, PurchasePayDue(amount="500"), user_id=3)
    p = purchases.get_purchase(db, pid)
    assert (p.due_amount, p.payment_status) == (Decimal("0.00"), "paid")
    assert _vendor_state(db, vid) == (Decimal("0.00"), "due")
    assert _recognized(db, pid) == Decimal("-1000.00")


def test_update_vendor_purchase_keeps_paid_and_moves_due(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor()
    pid = _buy(db, ref, vendor_id=vid, qty=10, unit="100", paid="300")

    with atomic(db):
        purchases.update_purchase(
            db, pid, PurchaseUpdate(item_type=ref.kind.value, item_id=ref.id, quantity=8, unit_cost="100"), user_id=3
        )

    p = purchases.get_purchase(db, pid)
    assert (p.total_cost, p.paid_amount, p.due_amount) == (Decimal("800.00"), Decimal("300.00"), Decimal("500.00"))
    assert resolve(db, ref).stock == 8
    assert _vendor_state(db, vid) == (Decimal("500.00"), "due")
    assert _recognized(db, pid) == Decimal("-300.00")

    mv = db.query(StockMovement).filter(StockMovement.purchase_id == pid).one()
    assert (mv.quantity, mv.previous_stock, mv.new_stock) == (8, 0, 8)

    with pytest.raises(OverpaymentError):
        with atomic(db):
            purchases.update_purchase(
                db, pid, PurchaseUpdate(item_type=ref.kind.value, item_id=ref.id, quantity=2, unit_cost="100"),
                user_id=3,
            )
    assert resolve(db, ref).stock == 8


def test_update_cash_purchase_settles_difference_with_hospital(db, make_lens):
    ref = make_lens(stock=0)
    pid = _buy(db, ref, qty=10, unit="100")

    with atomic(db):
        purchases.update_purchase(
            db, pid, PurchaseUpdate(item_type=ref.kind.value, item_id=ref.id, quantity=6, unit_cost="100"), user_id=3
        )
    assert _recognized(db, pid) == Decimal("-600.00")
    refund = hospital_account.entries_for(db, "optics_purchase", pid)[-1]
    assert (refund.type, refund.category) == ("income", settings.OPTICS_PURCHASE_REFUND_CATEGORY)

    with atomic(db):
        purchases.update_purchase(
            db, pid, PurchaseUpdate(item_type=ref.kind.value, item_id=ref.id, quantity=6, unit_cost="150"), user_id=3
        )
    p = purchases.get_purchase(db, pid)
    assert (p.paid_amount, p.payment_status) == (Decimal("900.00"), "paid")
    assert _recognized(db, pid) == Decimal("-900.00")


def test_delete_purchase_undoes_all_three_ledgers(db, make_frame, make_vendor):
    ref = make_frame(stock=1)
    vid = make_vendor(opening="50")
    hospital_before = hospital_account.balance(db)

    pid = _buy(db, ref, vendor_id=vid, qty=10, unit="100", paid="300")
    with atomic(db):
        purchases.pay_due(db, pid, PurchasePayDue(amount="200"), user_id=3)

    with atomic(db):
        summary = purchases.delete_purchase(db, pid, user_id=3)

    assert summary["vendor_due_reversed"] == Decimal("500.00")
    assert summary["refunded"] == Decimal("500.00")
    assert resolve(db, ref).stock == 1
    assert db.get(OpticsPurchase, pid) is None
    assert db.query(StockMovement).filter(StockMovement.purchase_id == pid).count() == 0
    assert _recognized(db, pid) == Decimal("0.00")
    assert hospital_account.balance(db) == hospital_before
    # back to the opening due
    assert _vendor_state(db, vid) == (Decimal("50.00"), "due")
    assert stock_ledger.stock_drift_report(db) == []


def test_delete_purchase_blocked_after_stock_was_sold(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor()
    pid = _buy(db, ref, vendor_id=vid, qty=10, unit="100")
    with atomic(db):
        stock_ledger.adjust_stock(db, ref=ref, quantity=-5)

    with pytest.raises(InsufficientStockError):
        with atomic(db):
            purchases.delete_purchase(db, pid, user_id=3)

    assert resolve(db, ref).stock == 5
    assert db.get(OpticsPurchase, pid) is not None
    assert _vendor_state(db, vid) == (Decimal("1000.00"), "due")


def test_frame_cost_averages_across_purchases(db, make_frame):
    ref = make_frame(stock=4, cost="100")
    _buy(db, ref, qty=4, unit="150")
    assert resolve(db, ref).cost_price == Decimal("125.00")


# -------------------------
# Stock-management quick path
# -------------------------
def test_cash_stock_in_posts_like_a_cash_purchase(db, make_lens):
    quick_ref = make_lens(stock=0)
    doc_ref = make_lens(stock=0)

    with atomic(db):
        mv = stock_management.stock_in(db, ref=quick_ref, quantity=2, unit_price="100")
    pid = _buy(db, doc_ref, qty=2, unit="100")

    quick = hospital_account.recognized_for_source(db, stock_management.MOVEMENT_SOURCE, mv.id)
    assert quick == _recognized(db, pid) == Decimal("-200.00")
    row = hospital_account.entries_for(db, stock_management.MOVEMENT_SOURCE, mv.id)[0]
    assert row.category == settings.OPTICS_PURCHASE_CATEGORY
    assert shop_account.balance(db) == Decimal("0.00")
    assert hospital_account.balance(db) == Decimal("-400.00")


def test_stock_in_with_vendor_opens_a_purchase(db, make_frame, make_vendor):
    ref = make_frame(stock=0)
    vid = make_vendor()
    with atomic(db):
        mv = stock_management.stock_in(db, ref=ref, quantity=5, unit_price="100", vendor_id=vid, paid_amount="200")

    p = purchases.get_purchase(db, mv.purchase_id)
    assert (p.vendor_id, p.total_cost, p.paid_amount, p.payment_status) == (
        vid, Decimal("500.00"), Decimal("200.00"), "partial"
    )
    assert _vendor_state(db, vid) == (Decimal("300.00"), "due")
    assert _recognized(db, p.id) == Decimal("-200.00")
    assert shop_account.balance(db) == Decimal("0.00")

    # owned by the purchase now, so only the purchase can change it
    with pytest.raises(InvalidOperationError):
        with atomic(db):
            stock_management.quick_delete_movement(db, mv.id)


def test_quick_edit_and_delete_settle_with_shop_account(db, make_frame):
    ref = make_frame(stock=0)
    with atomic(db):
        mv_id = stock_management.stock_in(db, ref=ref, quantity=5, unit_price="100").id
    assert hospital_account.balance(db) == Decimal("-500.00")
    assert shop_account.balance(db) == Decimal("0.00")

    with atomic(db):
        stock_management.quick_edit_movement(db, mv_id, ref=ref, quantity=3, unit_price="100")
    assert resolve(db, ref).stock == 3
    assert shop_account.balance(db) == Decimal("200.00")

    with atomic(db):
        refund = stock_management.quick_delete_movement(db, mv_id)
    assert refund == Decimal("300.00")
    assert resolve(db, ref).stock == 0
    assert shop_account.balance(db) == Decimal("500.00")
    assert hospital_account.balance(db) == Decimal("-500.00")


def test_quick_path_refuses_purchase_owned_movements(db, make_frame):
    ref = make_frame(stock=0)
    pid = _buy(db, ref, qty=2, unit="100")
    mv = db.query(StockMovement).filter(StockMovement.purchase_id == pid).one()

    with pytest.raises(InvalidOperationError):
        with atomic(db):
            stock_management.quick_delete_movement(db, mv.id)
    with pytest.raises(InvalidOperationError):
        with atomic(db):
            stock_management.quick_edit_movement(db, mv.id, ref=ref, quantity=1, unit_price="100")
    assert resolve(db, ref).stock == 2
