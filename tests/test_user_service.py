import pytest

from conftest import PASSWORD
from safari_ops.auth import verify_password
from safari_ops.exceptions import DuplicateEmail
from safari_ops.models import User
from safari_ops.services import user_service


class TestValidation:

    def test_normalize_email(self):
        assert user_service.normalize_email("  Grace.W@Safari.TEST ") == "grace.w@safari.test"

    def test_roles(self):
        assert user_service.validate_role("finance_officer") == "finance_officer"
        with pytest.raises(ValueError, match="Role must be one of"):
            user_service.validate_role("intern")

    def test_password_length(self):
        assert user_service.validate_password("abcdef") == "abcdef"
        with pytest.raises(ValueError, match="at least 6"):
            user_service.validate_password("abcde")


class TestCreateUser:

    def test_creates_with_normalized_email(self, db_session):
        user = user_service.create_user(db_session, "Amina@Safari.test", "Amina Odhiambo", "karibu1", "finance_officer")
        db_session.commit()

        assert user.email == "amina@safari.test"
        assert user.is_active is True
        assert verify_password("karibu1", user.hashed_password)
        assert user_service.find_by_email(db_session, "AMINA@safari.test").id == user.id

    def test_duplicate_ignores_case(self, db_session, driver_user):
        with pytest.raises(DuplicateEmail, match="driver@safari.test"):
            user_service.create_user(db_session, "Driver@Safari.test", "Copy", "karibu1", "driver")

    def test_bad_input_adds_nothing(self, db_session):
        with pytest.raises(ValueError):
            user_service.create_user(db_session, "x@safari.test", "X", "karibu1", "intern")
        with pytest.raises(ValueError):
            user_service.create_user(db_session, "x@safari.test", "X", "123", "driver")
        assert db_session.query(User).count() == 0


class TestUpdateUser:

    def test_reports_changes(self, driver_user):
        changes = user_service.update_user(driver_user, name="Joseph K.", is_active=False)
        assert changes == ["name='Joseph K.'", "is_active=False"]
        assert driver_user.name == "Joseph K."
        assert driver_user.is_active is False

    def test_nothing_given_changes_nothing(self, driver_user):
        assert user_service.update_user(driver_user) == []

    def test_bad_field_leaves_account_untouched(self, driver_user):
        with pytest.raises(ValueError):
            user_service.update_user(driver_user, name="Renamed", role="intern")
        with pytest.raises(ValueError):
            user_service.update_user(driver_user, is_active=False, password="123")
        assert driver_user.name != "Renamed"
        assert driver_user.role == "driver"
        assert driver_user.is_active is True

    def test_password_is_hashed(self, driver_user):
        assert user_service.update_user(driver_user, password="newsecret") == ["password changed"]
        assert verify_password("newsecret", driver_user.hashed_password)


class TestChangePassword:

    def test_wrong_old_password(self, driver_user):
        with pytest.raises(ValueError, match="incorrect"):
            user_service.change_password(driver_user, "wrong", "newsecret")
        assert verify_password(PASSWORD, driver_user.hashed_password)

    def test_short_new_password(self, driver_user):
        with pytest.raises(ValueError, match="at least 6"):
            user_service.change_password(driver_user, PASSWORD, "abc")

    def test_success(self, driver_user):
        user_service.change_password(driver_user, PASSWORD, "newsecret")
        assert verify_password("newsecret", driver_user.hashed_password)
