import random
from decimal import Decimal

import pytest

from hospital_ledger.core.config import settings
from hospital_ledger.db.session import atomic
from hospital_ledger.models.accounts import HospitalTransaction, OpticsTransaction
from hospital_ledger.models.inventory import MovementType, StockMovement
from hospital_ledger.models.sale import OpticsSale
from hospital_ledger.schemas.optics_sale import SaleCreate, SaleItemIn, SalePaymentIn, SaleUpdate
from hospital_ledger.services import catalogue, hospital_account, sales, shop_account, stock_ledger
from hospital_ledger.services.errors import (
    DeletionBlockedError,
    InsufficientStockError,
    InvalidLineItemError,
    InvalidOperationError,
    OverpaymentError,
    PaymentIncompleteError,
)
from hospital_ledger.services.items import ItemRef, resolve


def _line(ref, qty, price=None):
    return SaleItemIn(type=ref.kind.value, id=ref.id, quantity=qty, price=price)


def _create(db, lines, **kw):
    with atomic(db):
        sale = sales.create_sale(db, SaleCreate(items=lines, **kw), user_id=7)
        return sale.id


def _stock(db, ref):
    return resolve(db, ref).stock


def _sale_movements(db, sale_id):
    return db.query(StockMovement).filter(StockMovement.sale_id == sale_id).all()


def test_create_sale_moves_stock_and_posts_advance(db, make_frame):
    ref = make_frame(stock=5, selling="500")

    sale_id = _create(db, [_line(ref, 3)], advance_payment="1000", customer_name="Karim")

    sale = sales.get_sale(db, sale_id)
    assert sale.total_amount == Decimal("1500.00")
    assert sale.advance_payment == Decimal("1000.00")
    assert sale.due_amount == Decimal("500.00")
    assert sale.status == "pending"
    assert sale.seller_id == 7
    assert sale.invoice_number.startswith("OPT-")
    assert [(i.item_type, i.quantity, i.total_price) for i in sale.items] == [("glasses", 3, Decimal("1500.00"))]
    assert len(sale.payments) == 1 and sale.payments[0].notes == "Advance Payment"

    assert _stock(db, ref) == 2
    mvs = _sale_movements(db, sale_id)
    assert len(mvs) == 1
    assert mvs[0].movement_type == MovementType.SALE.value
    assert mvs[0].quantity == -3
    assert abs(mvs[0].total_amount) == Decimal("1500.00")

    shop = shop_account.entries_for(db, "optics_sale", sale_id)
    assert [(t.type, t.amount) for t in shop] == [("income", Decimal("1000.00"))]
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("1000.00")
    assert stock_ledger.stock_drift_report(db) == []


def test_insufficient_stock_writes_nothing(db, make_frame):
    ref = make_frame(stock=3)

    with pytest.raises(InsufficientStockError) as exc:
        _create(db, [_line(ref, 5)], advance_payment="100")

    assert (exc.value.available, exc.value.requested) == (3, 5)
    assert _stock(db, ref) == 3
    assert db.query(OpticsSale).count() == 0
    assert db.query(StockMovement).filter(StockMovement.movement_type == "sale").count() == 0
    assert db.query(OpticsTransaction).count() == 0
    assert db.query(HospitalTransaction).count() == 0


def test_second_line_failure_leaves_first_item_untouched(db, make_frame, make_lens):
    frame = make_frame(stock=5)
    lens = make_lens(stock=1)

    with pytest.raises(InsufficientStockError):
        _create(db, [_line(frame, 2), _line(lens, 2)])

    assert _stock(db, frame) == 5
    assert _stock(db, lens) == 1


def test_duplicate_lines_are_checked_together(db, make_frame):
    ref = make_frame(stock=3)
    with pytest.raises(InsufficientStockError):
        _create(db, [_line(ref, 2), _line(ref, 2)])
    assert _stock(db, ref) == 3


def test_advance_above_total_is_rejected(db, make_frame):
    ref = make_frame(stock=2, selling="500")
    with pytest.raises(OverpaymentError):
        _create(db, [_line(ref, 1)], advance_payment="600")
    assert _stock(db, ref) == 2
    assert db.query(OpticsSale).count() == 0


def test_discount_and_fitting_feed_total(db, make_frame):
    ref = make_frame(stock=2, selling="500")
    sale_id = _create(db, [_line(ref, 1, price="450")], glass_fitting_price="150", discount="100")
    sale = sales.get_sale(db, sale_id)
    assert sale.total_amount == Decimal("500.00")
    assert sale.due_amount == Decimal("500.00")
    assert sale.items[0].unit_price == Decimal("450.00")
    assert sale.payments == []
    assert shop_account.entries_for(db, "optics_sale", sale_id) == []

    with pytest.raises(InvalidOperationError):
        _create(db, [_line(ref, 1)], discount="600")


def test_fitting_only_sale_is_allowed_but_empty_sale_is_not(db):
    sale_id = _create(db, [], glass_fitting_price="200", advance_payment="200")
    assert sales.get_sale(db, sale_id).due_amount == Decimal("0.00")

    with pytest.raises(InvalidLineItemError):
        _create(db, [])


def test_unknown_and_inactive_items_are_rejected(db, make_frame):
    ref = make_frame(stock=3)
    with pytest.raises(InvalidLineItemError):
        _create(db, [SaleItemIn(type="frame", id=ref.id + 999, quantity=1)])
    with pytest.raises(InvalidLineItemError):
        _create(db, [SaleItemIn(type="sunglasses", id=ref.id, quantity=1)])

    with atomic(db):
        catalogue.set_item_active(db, ref, False)
    with pytest.raises(InvalidLineItemError):
        _create(db, [_line(ref, 1)])


def test_unsupported_payment_method_is_rejected(db, make_frame):
    ref = make_frame(stock=3, selling="100")
    with pytest.raises(InvalidOperationError):
        _create(db, [_line(ref, 1)], advance_payment="50", payment_method="barter")
    assert _stock(db, ref) == 3


def test_linked_patient_overrides_free_text(db, make_frame, patient):
    ref = make_frame(stock=3)
    sale_id = _create(db, [_line(ref, 1)], customer_id=patient, customer_name="Someone Else")
    sale = sales.get_sale(db, sale_id)
    assert sale.patient_id == patient
    assert sale.customer_name == "Rahima Begum"
    assert sale.customer_phone == "01711000000"

    walk_in = sales.get_sale(db, _create(db, [_line(ref, 1)], customer_name="   "))
    assert walk_in.patient_id is None
    assert walk_in.customer_name == "Walk-in Customer"


def test_item_name_snapshot_survives_rename(db, make_frame):
    ref = make_frame(stock=3)
    old_name = resolve(db, ref).name
    sale_id = _create(db, [_line(ref, 1)])

    with atomic(db):
        catalogue.update_item(db, ref, {"brand": "Oakley"})

    assert resolve(db, ref).name != old_name
    assert sales.get_sale(db, sale_id).items[0].item_name == old_name


def test_item_with_sales_cannot_be_deleted(db, make_frame):
    ref = make_frame(stock=3)
    _create(db, [_line(ref, 1)])
    with pytest.raises(DeletionBlockedError):
        with atomic(db):
            catalogue.delete_item(db, ref)
    assert _stock(db, ref) == 2


# -------------------------
# Payments and delivery
# -------------------------
def test_delivery_requires_zero_due(db, make_frame):
    ref = make_frame(stock=5, selling="500")
    paid = _create(db, [_line(ref, 1)], advance_payment="500")
    partial = _create(db, [_line(ref, 1)], advance_payment="450")

    with atomic(db):
        sales.update_status(db, paid, "delivered")
    assert sales.get_sale(db, paid).status == "delivered"

    with pytest.raises(PaymentIncompleteError):
        with atomic(db):
            sales.update_status(db, partial, "delivered")
    assert sales.get_sale(db, partial).status == "pending"

    with atomic(db):
        sales.update_status(db, partial, "ready")
    with pytest.raises(InvalidOperationError):
        with atomic(db):
            sales.update_status(db, partial, "shipped")


def test_due_payment_posts_both_accounts(db, make_frame):
    ref = make_frame(stock=5, selling="500")
    sale_id = _create(db, [_line(ref, 2)], advance_payment="400")

    with pytest.raises(OverpaymentError):
        with atomic(db):
            sales.add_payment(db, sale_id, SalePaymentIn(amount="700"), user_id=7)

    with atomic(db):
        sales.add_payment(db, sale_id, SalePaymentIn(amount="600", payment_method="bkash"), user_id=7)

    sale = sales.get_sale(db, sale_id)
    assert sale.due_amount == Decimal("0.00")
    assert sale.total_paid == Decimal("1000.00")
    assert [p.payment_method for p in sale.payments] == ["cash", "bkash"]
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("1000.00")
    assert shop_account.balance(db) == Decimal("1000.00")

    with atomic(db):
        sales.update_status(db, sale_id, "delivered")


# -------------------------
# Update / delete
# -------------------------
def test_update_rebuilds_sale_on_same_id(db, make_frame, make_lens):
    frame = make_frame(stock=5, selling="500")
    lens = make_lens(stock=4, price="800")
    sale_id = _create(db, [_line(frame, 2)], advance_payment="500")
    invoice = sales.get_sale(db, sale_id).invoice_number

    with atomic(db):
        sales.update_sale(
            db, sale_id, SaleUpdate(items=[_line(lens, 1)], advance_payment="200"), user_id=7
        )

    sale = sales.get_sale(db, sale_id)
    assert sale.invoice_number == invoice
    assert sale.total_amount == Decimal("800.00")
    assert sale.due_amount == Decimal("600.00")
    assert [i.item_name for i in sale.items] == [resolve(db, lens).name]
    assert [p.amount for p in sale.payments] == [Decimal("200.00")]

    assert _stock(db, frame) == 5
    assert _stock(db, lens) == 3
    mvs = _sale_movements(db, sale_id)
    assert [(ItemRef.of(m.item_type, m.item_id), m.quantity) for m in mvs] == [(lens, -1)]

    # shop side nets to a plain create with the new inputs
    assert shop_account.balance(db) == Decimal("200.00")
    reversal = [t for t in shop_account.entries_for(db, "optics_sale", sale_id) if t.type == "expense"]
    assert [(t.category, t.amount) for t in reversal] == [("Sale Update Reversal", Decimal("500.00"))]

    # hospital keeps what was recognised at create time
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("500.00")
    assert stock_ledger.stock_drift_report(db) == []


def test_update_can_reuse_its_own_stock(db, make_frame):
    ref = make_frame(stock=3, selling="100")
    sale_id = _create(db, [_line(ref, 3)])
    assert _stock(db, ref) == 0

    with atomic(db):
        sales.update_sale(db, sale_id, SaleUpdate(items=[_line(ref, 2)]), user_id=None)
    assert _stock(db, ref) == 1

    with pytest.raises(InsufficientStockError):
        with atomic(db):
            sales.update_sale(db, sale_id, SaleUpdate(items=[_line(ref, 4)]), user_id=None)
    assert _stock(db, ref) == 1
    assert [m.quantity for m in _sale_movements(db, sale_id)] == [-2]


def test_update_keeps_items_deactivated_since_the_sale(db, make_frame, make_lens):
    frame = make_frame(stock=3, selling="500")
    lens = make_lens(stock=3, price="200")
    sale_id = _create(db, [_line(frame, 1)], advance_payment="100")

    with atomic(db):
        catalogue.set_item_active(db, frame, False)
        catalogue.set_item_active(db, lens, False)

    with atomic(db):
        sales.update_sale(db, sale_id, SaleUpdate(items=[_line(frame, 1)], advance_payment="300"), user_id=None)
    sale = sales.get_sale(db, sale_id)
    assert (sale.advance_payment, sale.due_amount) == (Decimal("300.00"), Decimal("200.00"))
    assert _stock(db, frame) == 2

    # a newly added line still has to be active
    with pytest.raises(InvalidLineItemError):
        with atomic(db):
            sales.update_sale(db, sale_id, SaleUpdate(items=[_line(frame, 1), _line(lens, 1)]), user_id=None)
    assert _stock(db, lens) == 3


def test_delivered_sale_cannot_be_edited_into_due(db, make_frame):
    ref = make_frame(stock=5, selling="500")
    sale_id = _create(db, [_line(ref, 1)], advance_payment="500")
    with atomic(db):
        sales.update_status(db, sale_id, "delivered")

    with pytest.raises(PaymentIncompleteError):
        with atomic(db):
            sales.update_sale(db, sale_id, SaleUpdate(items=[_line(ref, 2)], advance_payment="500"), user_id=None)
    assert _stock(db, ref) == 4


def test_delete_sale_reverses_every_ledger(db, make_frame):
    ref = make_frame(stock=5, selling="500")
    sale_id = _create(db, [_line(ref, 2)], advance_payment="300")
    with atomic(db):
        sales.add_payment(db, sale_id, SalePaymentIn(amount="200"), user_id=None)

    with atomic(db):
        summary = sales.delete_sale(db, sale_id, user_id=None)

    assert summary["refunded"] == Decimal("500.00")
    assert summary["hospital_reversed"] == Decimal("500.00")
    assert summary["restored_lines"] == 1
    assert _stock(db, ref) == 5
    assert db.get(OpticsSale, sale_id) is None
    assert _sale_movements(db, sale_id) == []
    assert shop_account.balance(db) == Decimal("0.00")
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("0.00")
    reversal = [t for t in hospital_account.entries_for(db, "optics_sale", sale_id) if t.type == "expense"]
    assert reversal[0].category == settings.OPTICS_SALE_REVERSAL_CATEGORY


def test_create_then_delete_restores_everything(db, make_frame, make_lens):
    rng = random.Random(42)
    refs = [make_frame(stock=6, selling="450"), make_frame(stock=2, selling="1200"), make_lens(stock=9, price="300")]

    for _ in range(15):
        before = (
            [_stock(db, r) for r in refs],
            shop_account.balance(db),
            hospital_account.balance(db),
        )

        picks = rng.sample(refs, rng.randint(1, len(refs)))
        lines = [_line(r, rng.randint(1, 2)) for r in picks]
        fitting = Decimal(rng.choice([0, 100, 250]))
        try:
            sale_id = _create(db, lines, glass_fitting_price=fitting)
        except InsufficientStockError:
            continue

        sale = sales.get_sale(db, sale_id)
        advance = Decimal(rng.randint(0, int(sale.total_amount)))
        with atomic(db):
            sales.update_sale(
                db, sale_id, SaleUpdate(items=lines, glass_fitting_price=fitting, advance_payment=advance), user_id=None
            )
        due = sales.get_sale(db, sale_id).due_amount
        if due > 0 and rng.random() < 0.5:
            with atomic(db):
                sales.add_payment(db, sale_id, SalePaymentIn(amount=due), user_id=None)

        with atomic(db):
            sales.delete_sale(db, sale_id, user_id=None)

        after = (
            [_stock(db, r) for r in refs],
            shop_account.balance(db),
            hospital_account.balance(db),
        )
        assert after == before

    assert stock_ledger.stock_drift_report(db) == []


def test_hospital_never_recognises_more_than_was_paid(db, make_frame):
    ref = make_frame(stock=10, selling="500")
    sale_id = _create(db, [_line(ref, 2)], advance_payment="100")
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("100.00")

    with atomic(db):
        sales.add_payment(db, sale_id, SalePaymentIn(amount="250"), user_id=None)
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) == Decimal("350.00")

    sale = sales.get_sale(db, sale_id)
    assert hospital_account.recognized_for_source(db, "optics_sale", sale_id) <= sale.total_paid
