# services/migration.py
"""
Role migration: a customer registers a trade and becomes a tradesman.

The account is copied into the tradesmen database under a new id, the
customer record is deleted, and the trade profile is created against the new
id. There is no transaction spanning the two databases:

- a failure before the copy is inserted leaves everything unchanged
- a failed delete leaves a duplicate customer record behind, which is
  tolerated (login probes tradesmen first, a retry removes it)
- a second registration for the same person is a Conflict
"""
from dataclasses import dataclass

from errors import ConflictError, KaarigarError, NotFoundError
from models.identity import IdentityRef
from models.trade_profile import TradeProfile, TradeProfileForm
from models.user import Partition, Role, UserAccount
from services.identity import PartitionedIdentityStore
from stores.base import TradeProfileStore
from utils import new_id


@dataclass
class MigrationResult:
    account: UserAccount
    profile: TradeProfile
    # True when this call moved the account out of the customers database
    migrated: bool


class RoleMigration:
    def __init__(self, identities: PartitionedIdentityStore, profiles: TradeProfileStore):
        self.identities = identities
        self.profiles = profiles

    async def register_trade_profile(self, caller_id: str, form: TradeProfileForm) -> MigrationResult:
        key = IdentityRef.parse(caller_id).key

        # Step 1: find the caller, wherever a previous (maybe partial) migration left them
        account, partition = await self._locate(key)
        if account is None:
            raise NotFoundError("User not found")

        migrated = False
        if partition == Partition.TRADESMEN:
            # Already a tradesman account: nothing to move
            if await self.profiles.find_by_owner(account.id):
                raise ConflictError("Tradesman profile already exists")
        else:
            customer = account
            account = await self._copy_to_tradesmen(customer, form)
            migrated = True
            await self._remove_customer_record(customer)

        profile = await self._create_profile(account, form)
        return MigrationResult(account=account, profile=profile, migrated=migrated)

    async def _locate(self, key: str) -> tuple[UserAccount | None, Partition | None]:
        account = await self.identities.customers.find_by_id(key)
        if account:
            return account, Partition.CUSTOMERS
        account = await self.identities.tradesmen.find_by_id(key)
        if account:
            return account, Partition.TRADESMEN
        # Cookie issued before a completed migration still carries the customer id
        account = await self.identities.tradesmen.find_by_previous_id(key)
        if account:
            return account, Partition.TRADESMEN
        return None, None

    async def _copy_to_tradesmen(self, customer: UserAccount, form: TradeProfileForm) -> UserAccount:
        # An earlier attempt may have inserted the copy and then failed to delete the original
        existing = await self.identities.tradesmen.find_by_previous_id(customer.id)
        if existing:
            print(f"WARNING: resuming migration of customer {customer.id}, tradesman copy {existing.id} already exists")
            if await self.profiles.find_by_owner(existing.id):
                await self._remove_customer_record(customer)
                raise ConflictError("Tradesman profile already exists")
            return existing

        copy = UserAccount(
            id=new_id(),
            name=form.name or customer.name,
            email=customer.email,
            phone_number=form.phone or customer.phone_number,
            # Already a bcrypt hash; hashing it again would lock the user out
            password_hash=customer.password_hash,
            role=Role.TRADESMAN,
            city=form.city or customer.city,
            migrated_from_id=customer.id,
        )
        try:
            copy.id = await self.identities.tradesmen.insert(copy)
        except ConflictError as e:
            raise ConflictError("A tradesman account already uses this email or phone number") from e
        return copy

    async def _remove_customer_record(self, customer: UserAccount):
        try:
            deleted = await self.identities.customers.delete(customer.id)
        except KaarigarError as e:
            print(f"WARNING: could not delete migrated customer {customer.id}, duplicate left behind: {e}")
            return
        if not deleted:
            print(f"WARNING: migrated customer {customer.id} was already gone from the customers database")

    async def _create_profile(self, account: UserAccount, form: TradeProfileForm) -> TradeProfile:
        if await self.profiles.find_by_owner(account.id):
            raise ConflictError("Tradesman profile already exists")

        profile = TradeProfile(
            id=new_id(),
            owner_user_id=account.id,
            owner_user_id_string=str(account.id),
            name=form.name or account.name,
            email=account.email,
            phone_number=form.phone or account.phone_number,
            skills=form.skills,
            experience=form.experience,
            hourly_rate=form.hourly_rate,
            city=form.city,
            bio=form.bio,
            availability=form.availability,
            profile_image=form.profile_image,
        )
        try:
            profile.id = await self.profiles.insert(profile)
        except ConflictError as e:
            # Lost a race with a concurrent registration for the same owner
            raise ConflictError("Tradesman profile already exists") from e
        return profile
