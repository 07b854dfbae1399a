from decimal import Decimal

import pytest

from hospital_ledger.db.session import atomic
from hospital_ledger.models.accounts import OpticsTransaction
from hospital_ledger.models.inventory import StockMovement
from hospital_ledger.models.purchase import OpticsPurchase
from hospital_ledger.models.vendor import OpticsVendor
from hospital_ledger.services import catalogue, hospital_account, shop_account, stock_ledger, stock_management
from hospital_ledger.services.errors import DeletionBlockedError, InvalidLineItemError, InvalidOperationError
from hospital_ledger.services.items import ItemRef, parse_kind, resolve, try_resolve


def test_kind_aliases():
    assert parse_kind("frame") == parse_kind("glasses")
    assert parse_kind("LENS") == parse_kind("lens_types")
    with pytest.raises(InvalidLineItemError):
        parse_kind("contact_lens")
    with pytest.raises(InvalidLineItemError):
        ItemRef.of("frame", "abc")


def test_create_item_requires_identity_fields(db):
    with pytest.raises(InvalidOperationError):
        with atomic(db):
            catalogue.create_item(db, kind="frame", fields={"brand": "Ray-Ban"})
    with pytest.raises(InvalidOperationError):
        with atomic(db):
            catalogue.create_item(db, kind="lens", fields={"name": "Blue Cut", "price": "-1"})


def test_stock_quantity_is_not_editable(db, make_lens):
    ref = make_lens(stock=4)
    with atomic(db):
        catalogue.update_item(db, ref, {"stock_quantity": 99, "coating": "anti-glare"})
    h = resolve(db, ref)
    assert h.stock == 4
    assert h.row.coating == "anti-glare"


def test_complete_glasses_use_their_own_stock_and_prices(db, make_frame, make_lens):
    frame = make_frame(stock=3)
    lens = make_lens(stock=3)
    with atomic(db):
        h = catalogue.create_item(
            db,
            kind="complete_glasses",
            fields={
                "sku": "CG-001",
                "frame_id": frame.id,
                "lens_type_id": lens.id,
                "sphere_power": "-1.25",
                "total_cost": "900",
                "selling_price": "1500",
            },
            opening_stock=2,
        )
        ref = h.ref

    h = resolve(db, ref)
    assert h.stock == 2
    assert (h.cost_price, h.selling_price) == (Decimal("900.00"), Decimal("1500.00"))
    assert "(-1.25)" in h.name
    assert resolve(db, frame).stock == 3

    with pytest.raises(DeletionBlockedError):
        with atomic(db):
            catalogue.delete_item(db, frame)


def _balances(db):
    return shop_account.balance(db), hospital_account.balance(db)


def _vendor_state(db, vendor_id):
    v = db.get(OpticsVendor, vendor_id)
    db.refresh(v)
    return v.current_balance, v.balance_type


def test_opening_stock_is_bought_for_cash(db):
    with atomic(db):
        h = catalogue.create_item(
            db,
            kind="frame",
            fields={"sku": "FR-OPEN", "brand": "Titan", "purchase_price": "250", "selling_price": "400"},
            opening_stock=4,
        )
        ref = h.ref

    p = db.query(OpticsPurchase).one()
    assert (p.item_type, p.item_id, p.quantity) == ("glasses", ref.id, 4)
    assert (p.total_cost, p.paid_amount, p.payment_status) == (Decimal("1000.00"), Decimal("1000.00"), "paid")

    mv = stock_ledger.movements_for(db, ref)[0]
    assert (mv.movement_type, mv.quantity, mv.purchase_id) == ("purchase", 4, p.id)
    assert resolve(db, ref).cost_price == Decimal("250.00")
    assert _balances(db) == (Decimal("0.00"), Decimal("-1000.00"))


def test_create_then_delete_leaves_both_accounts_unchanged(db):
    before = _balances(db)
    with atomic(db):
        ref = catalogue.create_item(
            db,
            kind="frame",
            fields={"sku": "FR-TMP", "brand": "Titan", "purchase_price": "100", "selling_price": "180"},
            opening_stock=10,
        ).ref

    with atomic(db):
        summary = catalogue.delete_item(db, ref, user_id=1)

    assert summary["refunded"] == Decimal("1000.00")
    assert summary["purchases"] == 1
    assert _balances(db) == before
    assert try_resolve(db, ref) is None
    assert db.query(OpticsPurchase).count() == 0
    assert db.query(StockMovement).filter(StockMovement.item_id == ref.id, StockMovement.item_type == "glasses").count() == 0
    assert db.query(OpticsTransaction).count() == 0


def test_delete_item_settles_vendor_opening_stock(db, make_vendor):
    vid = make_vendor()
    with atomic(db):
        ref = catalogue.create_item(
            db,
            kind="lens",
            fields={"name": "Photochromic", "price": "200"},
            opening_stock=5,
            vendor_id=vid,
            paid_amount="400",
        ).ref

    assert _vendor_state(db, vid) == (Decimal("600.00"), "due")
    assert hospital_account.balance(db) == Decimal("-400.00")

    with atomic(db):
        summary = catalogue.delete_item(db, ref)

    assert (summary["vendor_due_reversed"], summary["refunded"]) == (Decimal("600.00"), Decimal("400.00"))
    assert _vendor_state(db, vid) == (Decimal("0.00"), "due")
    assert _balances(db) == (Decimal("0.00"), Decimal("0.00"))


def test_delete_item_settles_quick_stock_in(db, make_frame):
    ref = make_frame(stock=0)
    with atomic(db):
        mv_id = stock_management.stock_in(db, ref=ref, quantity=3, unit_price="100").id
    with atomic(db):
        stock_management.quick_edit_movement(db, mv_id, ref=ref, quantity=4, unit_price="100")
    assert _balances(db) == (Decimal("-100.00"), Decimal("-300.00"))

    with atomic(db):
        summary = catalogue.delete_item(db, ref)

    assert (summary["refunded"], summary["shop_reversed"]) == (Decimal("300.00"), Decimal("-100.00"))
    assert _balances(db) == (Decimal("0.00"), Decimal("0.00"))


def test_counted_stock_refunds_nothing_on_delete(db, make_lens):
    ref = make_lens(stock=6)
    with atomic(db):
        summary = catalogue.delete_item(db, ref)
    assert summary["stock"] == 6
    assert summary["refunded"] == Decimal("0.00")
    assert db.query(OpticsTransaction).count() == 0
    assert hospital_account.balance(db) == Decimal("0.00")


def test_low_stock_and_listing(db, make_frame, make_lens):
    low = make_frame(stock=1, minimum_stock_level=2)
    make_frame(stock=10, minimum_stock_level=2)
    lens = make_lens(stock=0)

    with atomic(db):
        catalogue.set_item_active(db, lens, False)

    flagged = [h.ref for h in catalogue.low_stock_items(db)]
    assert flagged == [low]

    assert len(catalogue.list_items(db, "frame")) == 2
    assert catalogue.list_items(db, "lens", active_only=True) == []
    assert stock_ledger.stock_drift_report(db) == []
