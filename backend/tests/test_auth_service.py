# Overview: Pytest coverage for PIN hashing, user creation and admin bootstrap.

import pytest

from mesapos.models import User
from mesapos.services import auth_service
from mesapos.services.auth_service import PinValidationError
from mesapos.validation import ConflictError, ValidationError


class TestPinHashing:

    def test_hash_and_verify(self, app):
        salt = auth_service.generate_salt()
        hashed = auth_service.hash_pin("4821", salt)

        assert hashed != "4821"
        assert auth_service.verify_pin("4821", salt, hashed) is True
        assert auth_service.verify_pin("4822", salt, hashed) is False

    def test_verify_rejects_mismatched_salt(self, app):
        hashed = auth_service.hash_pin("4821", auth_service.generate_salt())
        assert auth_service.verify_pin("4821", auth_service.generate_salt(), hashed) is False

    @pytest.mark.parametrize("pin", ["123", "1234567", "12a4", "", "1111"])
    def test_invalid_pins(self, pin):
        with pytest.raises(PinValidationError):
            auth_service.validate_pin(pin)

    @pytest.mark.parametrize("pin", ["1234", "48213", "905172"])
    def test_valid_pins(self, pin):
        auth_service.validate_pin(pin)


class TestUsers:

    def test_create_and_login(self, db_session):
        user = auth_service.create_user("Ana", "5931")

        assert user.role == User.ROLE_SELLER
        assert user.pin_hash != "5931"
        assert auth_service.verify_credentials("ana", "5931").id == user.id
        assert auth_service.verify_credentials("ana", "0000") is None
        assert auth_service.verify_credentials("nobody", "5931") is None

    def test_duplicate_username_is_case_insensitive(self, db_session, seller_user):
        with pytest.raises(ConflictError):
            auth_service.create_user("ANA", "1357")

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("bob", "1357", role="manager")

    def test_inactive_user_cannot_login(self, db_session, admin_user, seller_user):
        auth_service.set_user_active(seller_user.id, False)
        assert auth_service.verify_credentials("ana", "5931") is None

    def test_update_pin(self, db_session, seller_user):
        auth_service.update_pin(seller_user.id, "2468")

        assert auth_service.verify_credentials("ana", "5931") is None
        assert auth_service.verify_credentials("ana", "2468") is not None

    def test_last_admin_cannot_be_deactivated(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            auth_service.set_user_active(admin_user.id, False)

    def test_list_users(self, db_session, admin_user, seller_user):
        auth_service.set_user_active(seller_user.id, False)

        assert {u.username for u in auth_service.list_users()} == {"admin", "ana"}
        assert [u.username for u in auth_service.list_users(include_inactive=False)] == ["admin"]


class TestAdminSetup:

    def test_setup_admin_once(self, db_session):
        assert auth_service.has_admin() is False

        admin = auth_service.setup_admin("owner", "8642")
        assert admin.is_admin
        assert auth_service.has_admin() is True

        with pytest.raises(ConflictError):
            auth_service.setup_admin("second", "8642")
