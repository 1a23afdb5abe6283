# Overview: Pytest coverage for the sale ledger: totals, payments, atomicity and voids.

"""
Sale Ledger Tests

Covers:
- total == sum of item subtotals, split sums to total
- payment resolution for cash, card, transfer and mixed
- all-or-nothing create_sale (stock, sale rows, session totals)
- house-account sales
- void annotation without compensation
"""

from datetime import timedelta

import pytest

from mesapos.errors import (
    AmountMismatchError,
    EmptyOrderError,
    InsufficientPaymentError,
    InsufficientStockError,
    InvalidQuantityError,
    NoCashSessionOpenError,
    SaleAlreadyVoidedError,
    SaleNotFoundError,
    SessionAlreadyClosedError,
)
from mesapos.models import CashSession, Product, Sale, SaleItem
from mesapos.services import cash_session_service, sales_service
from mesapos.services.sales_service import (
    PaymentMethod,
    PaymentSplit,
    SaleItemInput,
    SaleType,
    build_sale_item,
    resolve_payment,
)
from mesapos.time_utils import utcnow
from mesapos.validation import ValidationError


class TestResolvePayment:

    def test_cash_change(self, app):
        result = resolve_payment(PaymentMethod.CASH, 2000, received_cents=2500)
        assert result.split == PaymentSplit(cash_cents=2000)
        assert result.received_cents == 2500
        assert result.change_cents == 500

    def test_cash_defaults_to_exact_amount(self, app):
        result = resolve_payment("cash", 1500)
        assert result.received_cents == 1500
        assert result.change_cents == 0

    def test_cash_insufficient(self, app):
        with pytest.raises(InsufficientPaymentError):
            resolve_payment(PaymentMethod.CASH, 2000, received_cents=1999)

    def test_cash_change_must_match(self, app):
        with pytest.raises(AmountMismatchError):
            resolve_payment(PaymentMethod.CASH, 2000, received_cents=2500, change_cents=300)

    def test_card_and_transfer_take_whole_total(self, app):
        assert resolve_payment("card", 900).split == PaymentSplit(card_cents=900)
        assert resolve_payment("transfer", 900).split == PaymentSplit(transfer_cents=900)

    def test_mixed_must_add_up(self, app):
        with pytest.raises(AmountMismatchError):
            resolve_payment(PaymentMethod.MIXED, 2000, cash_amount_cents=1000, transfer_amount_cents=500)

    def test_mixed_within_tolerance_is_absorbed_by_cash(self, app):
        result = resolve_payment(PaymentMethod.MIXED, 2000, cash_amount_cents=1001, transfer_amount_cents=1000)
        assert result.split == PaymentSplit(cash_cents=1000, transfer_cents=1000)
        assert result.split.total_cents == 2000

    def test_unknown_method(self, app):
        with pytest.raises(ValidationError):
            resolve_payment("cheque", 100)


class TestCreateSale:

    def test_total_is_sum_of_subtotals(self, db_session, coffee, sandwich, open_session):
        items = [build_sale_item(coffee, 2), build_sale_item(sandwich, 1)]

        sale = sales_service.create_sale(items, payment_method="card", cash_session_id=open_session.id)

        assert sale.total_cents == 2 * 1000 + 750
        assert sale.total_cents == sum(i.subtotal_cents for i in sale.items)
        assert sale.card_amount_cents == sale.total_cents
        assert sale.cash_amount_cents + sale.card_amount_cents + sale.transfer_amount_cents == sale.total_cents

    def test_stock_is_decremented(self, db_session, coffee, open_session):
        sales_service.create_sale([build_sale_item(coffee, 3)], cash_session_id=open_session.id)
        db_session.expire_all()
        assert db_session.get(Product, coffee.id).stock == 7

    def test_same_product_on_two_lines_is_aggregated(self, db_session, sandwich, open_session):
        items = [build_sale_item(sandwich, 3), build_sale_item(sandwich, 3)]

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(items, cash_session_id=open_session.id)

        db_session.expire_all()
        assert db_session.get(Product, sandwich.id).stock == 5

    def test_session_totals_are_posted(self, db_session, coffee, open_session):
        sales_service.create_sale([build_sale_item(coffee, 1)], payment_method="cash", cash_session_id=open_session.id)
        sales_service.create_sale([build_sale_item(coffee, 2)], payment_method="transfer", cash_session_id=open_session.id)

        db_session.expire_all()
        session = db_session.get(CashSession, open_session.id)
        assert session.sales_cash_total_cents == 1000
        assert session.sales_transfer_total_cents == 2000
        assert session.sales_card_total_cents == 0

    def test_items_snapshot_name_and_price(self, db_session, coffee, open_session):
        sale = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)

        coffee.name = "Coffee (large)"
        coffee.price_cents = 1500
        db_session.commit()

        db_session.expire_all()
        item = db_session.get(Sale, sale.id).items[0]
        assert item.product_name == "Coffee"
        assert item.price_cents == 1000

    def test_empty_sale_is_rejected(self, db_session):
        with pytest.raises(EmptyOrderError):
            sales_service.create_sale([])

    def test_non_positive_quantity_is_rejected(self, db_session, coffee):
        bad = SaleItemInput(product_id=coffee.id, product_name="Coffee", quantity=0, price_cents=1000)
        with pytest.raises(InvalidQuantityError):
            sales_service.create_sale([bad])

    def test_build_sale_item_rejects_zero(self, db_session, coffee):
        with pytest.raises(InvalidQuantityError):
            build_sale_item(coffee, 0)

    def test_mixed_without_split_is_rejected(self, db_session, coffee, open_session):
        with pytest.raises(AmountMismatchError):
            sales_service.create_sale(
                [build_sale_item(coffee, 1)],
                payment_method=PaymentMethod.MIXED,
                cash_session_id=open_session.id,
            )


class TestCreateSaleAtomicity:
    """A failed sale leaves stock, sales and the session exactly as before."""

    def test_insufficient_stock_rolls_back_everything(self, db_session, coffee, make_product, open_session):
        scarce = make_product("Cake", price_cents=900, stock=1)
        items = [build_sale_item(coffee, 2), build_sale_item(scarce, 2)]

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(items, cash_session_id=open_session.id)
        assert exc_info.value.product_id == scarce.id

        db_session.expire_all()
        assert db_session.get(Product, coffee.id).stock == 10
        assert db_session.get(Product, scarce.id).stock == 1
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.get(CashSession, open_session.id).sales_cash_total_cents == 0

    def test_closed_session_rolls_back_stock(self, db_session, coffee, admin_user, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)

        with pytest.raises(SessionAlreadyClosedError):
            sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)

        db_session.expire_all()
        assert db_session.get(Product, coffee.id).stock == 10
        assert db_session.query(Sale).count() == 0


class TestCartAndHouseSales:

    def test_sell_cart_requires_open_session(self, db_session, coffee):
        with pytest.raises(NoCashSessionOpenError):
            sales_service.sell_cart([{"product_id": coffee.id, "quantity": 1}], payment_method="cash")

    def test_sell_cart_cash_with_change(self, db_session, coffee, seller_user, open_session):
        result = sales_service.sell_cart(
            [{"product_id": coffee.id, "quantity": 2}],
            payment_method="cash",
            user_id=seller_user.id,
            received_cents=2500,
        )
        assert result.sale.total_cents == 2000
        assert result.change_cents == 500
        assert result.sale.cash_session_id == open_session.id
        assert result.sale.user_id == seller_user.id

    def test_sell_cart_mixed(self, db_session, coffee, open_session):
        result = sales_service.sell_cart(
            [{"product_id": coffee.id, "quantity": 3}],
            payment_method="mixed",
            cash_amount_cents=1000,
            transfer_amount_cents=2000,
        )
        sale = result.sale
        assert sale.payment_method == "mixed"
        assert (sale.cash_amount_cents, sale.transfer_amount_cents) == (1000, 2000)

        db_session.expire_all()
        session = db_session.get(CashSession, open_session.id)
        assert session.sales_cash_total_cents == 1000
        assert session.sales_transfer_total_cents == 2000

    def test_sell_empty_cart(self, db_session, open_session):
        with pytest.raises(EmptyOrderError):
            sales_service.sell_cart([], payment_method="cash")

    def test_house_sale_has_no_revenue_but_consumes_stock(self, db_session, make_product, admin_user):
        """Two items worth 15.00 in total: total 0, stock down, no session needed."""
        soda = make_product("Soda", price_cents=500, stock=4)
        chips = make_product("Chips", price_cents=1000, stock=2)

        sale = sales_service.record_house_sale(
            [{"product_id": soda.id, "quantity": 1}, {"product_id": chips.id, "quantity": 1}],
            user_id=admin_user.id,
            notes="staff meal",
        )

        assert sale.sale_type == SaleType.HOUSE.value
        assert sale.total_cents == 0
        assert sale.cash_amount_cents == sale.card_amount_cents == sale.transfer_amount_cents == 0
        assert sale.cash_session_id is None
        assert sum(i.subtotal_cents for i in sale.items) == 1500

        db_session.expire_all()
        assert db_session.get(Product, soda.id).stock == 3
        assert db_session.get(Product, chips.id).stock == 1


class TestVoidSale:

    def test_void_annotates_without_compensation(self, db_session, coffee, admin_user, open_session):
        sale = sales_service.create_sale([build_sale_item(coffee, 2)], cash_session_id=open_session.id)

        voided = sales_service.void_sale(sale.id, admin_user.id, "wrong table")

        assert voided.is_voided
        assert voided.void_reason == "wrong table"
        assert voided.voided_by_user_id == admin_user.id

        db_session.expire_all()
        assert db_session.get(Product, coffee.id).stock == 8
        assert db_session.get(CashSession, open_session.id).sales_cash_total_cents == 2000

    def test_void_twice(self, db_session, coffee, admin_user, open_session):
        sale = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        sales_service.void_sale(sale.id, admin_user.id, "duplicate")

        with pytest.raises(SaleAlreadyVoidedError):
            sales_service.void_sale(sale.id, admin_user.id, "again")

    def test_void_requires_reason(self, db_session, coffee, admin_user, open_session):
        sale = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        with pytest.raises(ValidationError):
            sales_service.void_sale(sale.id, admin_user.id, "   ")

    def test_void_requires_user(self, db_session, coffee, open_session):
        sale = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        with pytest.raises(ValidationError):
            sales_service.void_sale(sale.id, None, "oops")

        db_session.expire_all()
        assert db_session.get(Sale, sale.id).voided_at is None

    def test_void_missing_sale(self, db_session, admin_user):
        with pytest.raises(SaleNotFoundError):
            sales_service.void_sale(404, admin_user.id, "nope")


class TestSaleReads:

    def test_date_range_and_today_total(self, db_session, coffee, admin_user, open_session):
        first = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        second = sales_service.create_sale([build_sale_item(coffee, 2)], cash_session_id=open_session.id)
        sales_service.void_sale(second.id, admin_user.id, "test")

        now = utcnow()
        in_range = sales_service.get_sales_by_date_range(now - timedelta(hours=1), now + timedelta(hours=1))
        assert {s.id for s in in_range} == {first.id, second.id}

        assert sales_service.get_sales_by_date_range(now + timedelta(hours=1), None) == []
        assert sales_service.get_today_sales_total() == 1000

    def test_get_all_sales_newest_first(self, db_session, coffee, open_session):
        first = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        second = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)

        ids = [s.id for s in sales_service.get_all_sales()]
        assert ids[0] == second.id
        assert set(ids) == {first.id, second.id}
        assert len(sales_service.get_all_sales(limit=1)) == 1
