# Overview: Flask API routes for PIN login and user management; parses input and returns JSON responses.

"""
Authentication and user management routes

SECURITY FEATURES:
- PINs are validated (4-6 digits, not a single repeated digit) and bcrypt-hashed
- Inactive users cannot sign in
- First-run admin setup is only possible while no admin exists
- The last active admin cannot be deactivated

Login answers with the user record; the terminal keeps the signed-in user
and sends its user_id with each operation.
"""

from flask import Blueprint, current_app, jsonify, request

from ..models import User
from ..services import auth_service
from ..services.auth_service import PinValidationError
from ..validation import ConflictError, ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@auth_bp.get("/status")
def auth_status_route():
    """Tells the terminal whether first-run admin setup is still pending."""
    return jsonify({"needs_setup": not auth_service.has_admin()})


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with username and PIN.

    Request body: {"username": "ana", "pin": "4821"}
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    pin = data.get("pin")

    if not all([username, pin]):
        return jsonify({"error": "username and pin required"}), 400

    try:
        user = auth_service.verify_credentials(username, str(pin))
    except Exception:
        current_app.logger.exception("Login failed unexpectedly")
        return jsonify({"error": "Internal server error"}), 500

    if not user:
        current_app.logger.info("Failed login for %s", username)
        return jsonify({"error": "Invalid username or PIN"}), 401

    return jsonify({"user": user.to_dict()}), 200


@auth_bp.post("/setup-admin")
def setup_admin_route():
    """First-run bootstrap. Request body: {"username": "admin", "pin": "4821"}"""
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.setup_admin(data.get("username"), str(data.get("pin") or ""))
    except PinValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Admin setup failed")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@users_bp.get("")
def list_users_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    users = auth_service.list_users(include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
def create_user_route():
    """Request body: {"username": "ana", "pin": "4821", "role": "seller"}"""
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.create_user(
            data.get("username"),
            str(data.get("pin") or ""),
            role=data.get("role") or User.ROLE_SELLER,
        )
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 201


@users_bp.patch("/<int:user_id>")
def update_user_route(user_id: int):
    """
    Change a user's PIN and/or active flag.

    Request body: {"pin": "5931"} and/or {"is_active": false}
    """
    data = request.get_json(silent=True) or {}
    if "pin" not in data and "is_active" not in data:
        return jsonify({"error": "pin or is_active required"}), 400

    try:
        if auth_service.get_user(user_id) is None:
            return jsonify({"error": "User not found"}), 404
        if "pin" in data:
            auth_service.update_pin(user_id, str(data.get("pin") or ""))
        if "is_active" in data:
            if not isinstance(data["is_active"], bool):
                return jsonify({"error": "is_active must be a boolean"}), 400
            auth_service.set_user_active(user_id, data["is_active"])
        user = auth_service.get_user(user_id)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user.to_dict()}), 200
