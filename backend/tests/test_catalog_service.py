# Overview: Pytest coverage for the product catalog and stock mutations.

import pytest

from mesapos.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductInUseError,
    ProductNotFoundError,
)
from mesapos.models import Product
from mesapos.services import catalog_service, sales_service, table_service
from mesapos.validation import ValidationError


class TestProductCrud:

    def test_create_product_defaults_stock_to_zero(self, db_session):
        product = catalog_service.create_product({"name": "Tea", "price_cents": 450})
        assert product.id is not None
        assert product.stock == 0
        assert product.is_active is True

    def test_create_product_rejects_non_positive_price(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Free lunch", "price_cents": 0})

    def test_create_product_rejects_decimal_price(self, db_session):
        """Money fields are integer cents; 4.50 must not be truncated."""
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Tea", "price_cents": 4.5})

    def test_create_product_rejects_unknown_fields(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Tea", "price_cents": 450, "id": 99})

    def test_create_product_rejects_negative_stock(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Tea", "price_cents": 450, "stock": -1})

    def test_update_product_partial(self, db_session, coffee):
        updated = catalog_service.update_product(coffee.id, {"price_cents": 1200})
        assert updated.price_cents == 1200
        assert updated.name == "Coffee"

    def test_get_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            catalog_service.get_product(12345)

    def test_list_hides_inactive_products(self, db_session, make_product):
        make_product("Active", 100, 1)
        make_product("Retired", 100, 1, is_active=False)

        names = [p.name for p in catalog_service.list_products()]
        assert names == ["Active"]

        all_names = [p.name for p in catalog_service.list_products(include_inactive=True)]
        assert sorted(all_names) == ["Active", "Retired"]

    def test_search_is_case_insensitive(self, db_session, make_product):
        make_product("Flat White", 500, 3)
        make_product("Espresso", 300, 3)

        results = catalog_service.search_products("WHITE")
        assert [p.name for p in results] == ["Flat White"]


class TestDeleteProduct:

    def test_delete_unreferenced_product(self, db_session, coffee):
        catalog_service.delete_product(coffee.id)
        assert db_session.get(Product, coffee.id) is None

    def test_delete_sold_product_is_refused(self, db_session, coffee, admin_user):
        sales_service.record_house_sale([{"product_id": coffee.id, "quantity": 1}], user_id=admin_user.id)

        with pytest.raises(ProductInUseError):
            catalog_service.delete_product(coffee.id)

    def test_delete_product_on_open_tab_is_refused(self, db_session, coffee):
        order = table_service.open_table(3)
        table_service.add_item(order.id, coffee.id, 1)

        with pytest.raises(ProductInUseError):
            catalog_service.delete_product(coffee.id)

    def test_delete_product_only_on_cancelled_tab(self, db_session, coffee):
        order = table_service.open_table(3)
        table_service.add_item(order.id, coffee.id, 1)
        table_service.cancel_table(order.id)

        catalog_service.delete_product(coffee.id)
        assert db_session.get(Product, coffee.id) is None


class TestStock:

    def test_restock_adds_units(self, db_session, sandwich):
        product = catalog_service.restock_product(sandwich.id, 7)
        assert product.stock == 12

    def test_restock_rejects_non_positive(self, db_session, sandwich):
        with pytest.raises(InvalidQuantityError):
            catalog_service.restock_product(sandwich.id, 0)

    def test_decrement_stock_is_conditional(self, db_session, sandwich):
        catalog_service.decrement_stock(sandwich.id, 5)
        db_session.commit()
        assert db_session.get(Product, sandwich.id).stock == 0

        with pytest.raises(InsufficientStockError) as exc_info:
            catalog_service.decrement_stock(sandwich.id, 1)
        assert exc_info.value.product_id == sandwich.id
        assert exc_info.value.details["available"] == 0

    def test_decrement_stock_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            catalog_service.decrement_stock(999, 1)

    def test_has_stock_is_advisory(self, db_session, sandwich):
        assert catalog_service.has_stock(sandwich.id, 5) is True
        assert catalog_service.has_stock(sandwich.id, 6) is False
        assert catalog_service.has_stock(999, 1) is False
