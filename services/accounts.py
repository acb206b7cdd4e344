# services/accounts.py
from pydantic import BaseModel, EmailStr, Field, field_validator

from errors import ConflictError, InvalidArgumentError, UnauthenticatedError
from models.trade_profile import CITY_MAX_LENGTH, NAME_MAX_LENGTH, PHONE_PATTERN
from models.user import Role, UserAccount, parse_role, partition_for_role
from security import hash_password, verify_password
from services.identity import PartitionedIdentityStore
from utils import new_id

PASSWORD_MIN_LENGTH = 6
# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_BYTES = 72


class RegistrationForm(BaseModel):
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    role: Role = Role.CUSTOMER
    city: str | None = Field(None, max_length=CITY_MAX_LENGTH)

    @field_validator("name", "phone", "city", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value):
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"must be at most {PASSWORD_MAX_BYTES} bytes")
        return value

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if value in (None, ""):
            return Role.CUSTOMER
        role = parse_role(value)
        if role is None:
            raise ValueError("must be customer, tradesman or admin")
        return role


class AccountService:
    """Registration and login across the two user partitions."""

    def __init__(self, identities: PartitionedIdentityStore):
        self.identities = identities

    async def register(self, form: RegistrationForm) -> UserAccount:
        store = self.identities.for_role(form.role)
        email = str(form.email).lower()

        # Uniqueness is per partition only
        if await store.find_by_email(email):
            raise ConflictError("User already exists with this email")
        if await store.find_by_phone(form.phone):
            raise ConflictError("User already exists with this phone number")

        account = UserAccount(
            id=new_id(),
            name=form.name,
            email=email,
            phone_number=form.phone,
            password_hash=hash_password(form.password),
            role=form.role,
            city=form.city or None,
        )
        # The unique constraints still catch a concurrent registration
        account.id = await store.insert(account)
        print(f"DEBUG: registered {account.role.value} account {account.id} in {partition_for_role(account.role).value}")
        return account

    async def authenticate(self, email: str, password: str) -> UserAccount:
        if not email or not password:
            raise InvalidArgumentError("Email and password are required")
        email = email.strip().lower()

        # Tradesmen first: during a migration both partitions hold the same account.
        # Unrelated people may also share an email across partitions, so a
        # password mismatch in one partition still tries the other.
        for partition in self.identities.search_order(None):
            account = await self.identities.partition(partition).find_by_email(email)
            if account is None:
                continue
            if verify_password(password, account.password_hash):
                return account
        raise UnauthenticatedError("Invalid email or password")
