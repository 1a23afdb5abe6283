# Overview: Service-layer operations for the product catalog; CRUD and stock mutations.

"""
Catalog Service

Product CRUD plus the stock mutations the sale ledger relies on.

STOCK RULES:
- Stock never goes negative (CHECK constraint + conditional decrement)
- Only the sale ledger decrements stock, always inside its unit of work
- Catalog edits never touch historical sale items (they carry snapshots)
"""
from __future__ import annotations

from sqlalchemy import func, update

from ..extensions import db
from ..errors import InsufficientStockError, ProductInUseError, ProductNotFoundError, InvalidQuantityError
from ..models import Product, SaleItem, TableOrder, TableOrderItem
from ..validation import PRODUCT_POLICY, enforce_rules_product, validate_payload


def list_products(include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def search_products(term: str, include_inactive: bool = False) -> list[Product]:
    """Case-insensitive name search."""
    term = (term or "").strip()
    if not term:
        return list_products(include_inactive=include_inactive)

    query = db.session.query(Product).filter(
        func.lower(Product.name).contains(term.lower())
    )
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def create_product(payload: dict) -> Product:
    """
    Create a product from a raw payload.

    Required: name, price_cents (> 0). Optional: stock (>= 0, default 0), is_active.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    patch.setdefault("stock", 0)
    enforce_rules_product(patch)

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    for k, v in patch.items():
        setattr(product, k, v)

    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """
    Hard delete a product that nothing references.

    Products sold at least once, or sitting on an open tab, are kept so that
    history stays joinable; deactivate them instead.
    """
    product = get_product(product_id)

    sold = db.session.query(SaleItem.id).filter_by(product_id=product_id).first()
    on_open_tab = (
        db.session.query(TableOrderItem.id)
        .join(TableOrder, TableOrder.id == TableOrderItem.table_order_id)
        .filter(
            TableOrderItem.product_id == product_id,
            TableOrder.status == TableOrder.STATUS_OPEN,
        )
        .first()
    )
    if sold or on_open_tab:
        raise ProductInUseError(product_id)

    # Lines of closed tabs are history only; drop them with the product.
    db.session.query(TableOrderItem).filter_by(product_id=product_id).delete()
    db.session.delete(product)
    db.session.commit()


def restock_product(product_id: int, quantity: int) -> Product:
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(quantity)

    product = get_product(product_id)
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session="fetch")
    )
    db.session.commit()
    db.session.refresh(product)
    return product


def has_stock(product_id: int, quantity: int) -> bool:
    """Advisory read-only check. The authoritative check happens at sale commit."""
    product = db.session.get(Product, product_id)
    if product is None:
        return False
    return product.stock >= quantity


def decrement_stock(product_id: int, quantity: int) -> None:
    """
    Conditionally take `quantity` units out of stock.

    Runs inside the caller's unit of work and never commits. The WHERE
    clause makes the check-and-decrement a single statement, so two
    interleaved checkouts can never both consume the last unit.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 1:
        return

    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    raise InsufficientStockError(product_id, requested=quantity, available=product.stock)
