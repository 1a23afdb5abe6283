# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

"""
Product catalog routes.

Writes go through catalog_service, which validates the payload against the
Product columns and the writable-field policy. Stock only increases here
(create, update, restock); sales decrement it through the ledger.
"""
from flask import Blueprint, current_app, request

from ..errors import PosError
from ..services import catalog_service
from ..validation import ConflictError, ValidationError, parse_int

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List products.

    Query params:
    - q: str (optional) - case-insensitive name search
    - include_inactive: "1"/"true" to include deactivated products
    """
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    term = request.args.get("q")

    if term:
        products = catalog_service.search_products(term, include_inactive=include_inactive)
    else:
        products = catalog_service.list_products(include_inactive=include_inactive)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return product.to_dict()


@products_bp.post("")
def create_product_route():
    """
    Create a new product.

    Request body: {"name": "Coffee", "price_cents": 350, "stock": 20}
    """
    payload = request.get_json(silent=True) or {}

    try:
        product = catalog_service.create_product(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 201


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        product = catalog_service.update_product(product_id, payload)
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """
    Delete a product.

    Products referenced by sales or open tabs answer 409; deactivate them
    with PATCH {"is_active": false} instead.
    """
    try:
        catalog_service.delete_product(product_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/restock")
def restock_product_route(product_id: int):
    """Request body: {"quantity": 12}"""
    payload = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(payload.get("quantity"), "quantity")
        product = catalog_service.restock_product(product_id, quantity)
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return {"error": "Internal server error"}, 500

    return product.to_dict()
