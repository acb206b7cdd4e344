import pytest
from pydantic import ValidationError

from errors import ConflictError, InvalidArgumentError, UnauthenticatedError
from models.user import Role
from security import create_token, decode_token, hash_password, verify_password
from services.accounts import RegistrationForm


def registration(**overrides) -> RegistrationForm:
    data = dict(name="Asha", email="Asha@Example.com", password="secret123", phone="9000000001")
    data.update(overrides)
    return RegistrationForm(**data)


# =============================================================================
# Registration
# =============================================================================

class TestRegister:
    async def test_customer_lands_in_customers_partition(self, accounts, stores):
        account = await accounts.register(registration())

        assert account.role == Role.CUSTOMER
        assert account.email == "asha@example.com"
        assert account.id in stores.customers.rows
        assert not stores.tradesmen.rows

    async def test_tradesman_lands_in_tradesmen_partition(self, accounts, stores):
        account = await accounts.register(registration(role="tradesman"))

        assert account.id in stores.tradesmen.rows
        assert not stores.customers.rows

    async def test_legacy_user_role_means_customer(self, accounts):
        account = await accounts.register(registration(role="user"))
        assert account.role == Role.CUSTOMER

    async def test_password_is_hashed(self, accounts):
        account = await accounts.register(registration())

        assert account.password_hash != "secret123"
        assert verify_password("secret123", account.password_hash)

    async def test_duplicate_email_in_same_partition(self, accounts):
        await accounts.register(registration())

        with pytest.raises(ConflictError, match="email"):
            await accounts.register(registration(phone="9000000002"))

    async def test_duplicate_phone_in_same_partition(self, accounts):
        await accounts.register(registration())

        with pytest.raises(ConflictError, match="phone"):
            await accounts.register(registration(email="other@example.com"))

    async def test_same_email_allowed_in_other_partition(self, accounts, stores):
        await accounts.register(registration())
        await accounts.register(registration(role="tradesman"))

        assert len(stores.customers.rows) == 1
        assert len(stores.tradesmen.rows) == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"email": "not-an-email"},
            {"password": "123"},
            {"phone": "12345"},
            {"phone": "98765abcde"},
            {"role": "superuser"},
            {"name": ""},
            {"name": "A" * 101},
            {"city": "C" * 101},
            {"password": "ß" * 40},
        ],
    )
    def test_form_validation(self, overrides):
        with pytest.raises(ValidationError):
            registration(**overrides)


# =============================================================================
# Login
# =============================================================================

class TestAuthenticate:
    async def test_valid_credentials(self, accounts, register):
        account = await register("Meena")

        logged_in = await accounts.authenticate(" MEENA@example.com ", "secret123")

        assert logged_in.id == account.id

    async def test_wrong_password(self, accounts, register):
        await register("Meena")

        with pytest.raises(UnauthenticatedError):
            await accounts.authenticate("meena@example.com", "wrong-password")

    async def test_shared_email_across_partitions_logs_into_the_matching_account(self, accounts):
        tradesman = await accounts.register(
            registration(email="dup@example.com", password="tradepass1", role="tradesman")
        )
        customer = await accounts.register(registration(email="dup@example.com", password="custpass1"))

        assert (await accounts.authenticate("dup@example.com", "custpass1")).id == customer.id
        assert (await accounts.authenticate("dup@example.com", "tradepass1")).id == tradesman.id
        with pytest.raises(UnauthenticatedError):
            await accounts.authenticate("dup@example.com", "otherpass1")

    async def test_unknown_email(self, accounts):
        with pytest.raises(UnauthenticatedError):
            await accounts.authenticate("nobody@example.com", "secret123")

    async def test_missing_fields(self, accounts):
        with pytest.raises(InvalidArgumentError):
            await accounts.authenticate("", "secret123")


# =============================================================================
# Password hashing and session tokens
# =============================================================================

def test_verify_password_rejects_non_bcrypt_value():
    assert verify_password("secret123", "plain-text") is False


def test_hash_is_salted():
    assert hash_password("secret123") != hash_password("secret123")


def test_token_round_trip():
    user = decode_token(create_token("abc", "a@example.com", Role.TRADESMAN))

    assert user.id == "abc"
    assert user.email == "a@example.com"
    assert user.role == Role.TRADESMAN


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_invalid_token(token):
    assert decode_token(token) is None


def test_tampered_token():
    token = create_token("abc", "a@example.com", Role.CUSTOMER)
    assert decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB")) is None
