"""Tests for identity references and the cross-partition resolver."""
import uuid

import pytest

from errors import InvalidArgumentError, NotFoundError, TransientError
from models.identity import UNKNOWN_USER_NAME, IdentityRef, canonical_key
from models.trade_profile import TradeProfile
from models.user import Partition, Role
from services.identity import PartitionedIdentityStore
from services.resolver import CrossPartitionResolver
from tests.fakes import BrokenUserStore


class TestIdentityRef:
    def test_uuid_spellings_normalize_to_one_key(self):
        raw = uuid.uuid4()
        expected = str(raw)
        assert canonical_key(str(raw).upper()) == expected
        assert canonical_key(raw.hex) == expected
        assert canonical_key("{%s}" % raw) == expected
        assert canonical_key(f"  {raw}  ") == expected

    def test_non_uuid_key_is_only_stripped(self):
        assert canonical_key("  legacy-42 ") == "legacy-42"

    def test_partition_tag_wins_over_role_hint(self):
        key = str(uuid.uuid4())
        ref = IdentityRef.parse(f"tradesmen:{key}", role="customer")
        assert ref.partition == Partition.TRADESMEN
        assert ref.key == key

    def test_role_hint_sets_partition(self):
        ref = IdentityRef.parse(str(uuid.uuid4()), role=Role.CUSTOMER)
        assert ref.partition == Partition.CUSTOMERS

    def test_admin_maps_to_customers(self):
        assert IdentityRef.parse("abc", role="admin").partition == Partition.CUSTOMERS

    @pytest.mark.parametrize("raw", [None, "", "   ", "customers:"])
    def test_empty_reference_rejected(self, raw):
        with pytest.raises(InvalidArgumentError):
            IdentityRef.parse(raw)


class TestResolve:
    async def test_finds_account_in_either_partition_with_or_without_hint(self, register, resolver):
        customer = await register("Meena")
        tradesman = await register("Ravi", role="tradesman")

        for account in (customer, tradesman):
            for hint in (None, Role.CUSTOMER, Role.TRADESMAN):
                resolution = await resolver.resolve(account.id, role_hint=hint)
                assert resolution.found
                assert resolution.identity.name == account.name
                assert resolution.identity.email == account.email
                assert resolution.identity.account_id == account.id

    async def test_hinted_partition_is_searched_first(self, register, resolver):
        customer = await register("Meena")

        resolution = await resolver.resolve(customer.id, role_hint="customer")

        assert resolution.source == "hinted_partition"
        assert [s.partition for s in resolution.trace.steps] == ["customers"]

    async def test_wrong_hint_falls_back_to_other_partition(self, register, resolver):
        customer = await register("Meena")

        resolution = await resolver.resolve(customer.id, role_hint="tradesman")

        assert resolution.source == "partition_by_id"
        assert [(s.partition, s.found) for s in resolution.trace.steps] == [
            ("tradesmen", False),
            ("customers", True),
        ]

    async def test_differently_encoded_reference_resolves(self, register, resolver):
        customer = await register("Meena")

        resolution = await resolver.resolve(uuid.UUID(customer.id).hex.upper())

        assert resolution.found
        assert resolution.identity.id == customer.id

    async def test_unknown_reference_returns_sentinel(self, resolver):
        resolution = await resolver.resolve(str(uuid.uuid4()))

        assert not resolution.found
        assert resolution.identity.name == UNKNOWN_USER_NAME
        assert resolution.identity.email == ""
        assert resolution.source is None

    async def test_trade_profile_fallback_when_account_missing(self, stores, resolver):
        owner_id = str(uuid.uuid4())
        await stores.profiles.insert(
            TradeProfile(
                id=str(uuid.uuid4()),
                owner_user_id=owner_id,
                owner_user_id_string=owner_id,
                name="Orphan Profile",
                email="orphan@example.com",
                skills=["Carpentry"],
                experience=3,
                hourly_rate=300,
                city="Pune",
                bio="Woodwork",
                availability="Weekends",
            )
        )

        resolution = await resolver.resolve(owner_id)

        assert resolution.found
        assert resolution.source == "trade_profile"
        assert resolution.identity.name == "Orphan Profile"
        assert resolution.identity.role == Role.TRADESMAN

    async def test_results_are_cached_per_resolver(self, register, stores, resolver):
        customer = await register("Meena")
        await resolver.resolve(customer.id)

        stores.customers.rows.clear()

        assert (await resolver.resolve(customer.id)).found

    async def test_require_raises_not_found_with_trace(self, resolver):
        with pytest.raises(NotFoundError) as exc_info:
            await resolver.require(str(uuid.uuid4()))

        steps = [s.step for s in exc_info.value.trace.steps]
        assert steps == ["partition_by_id", "partition_by_id", "previous_id", "previous_id", "trade_profile"]


class TestFuzzyMatch:
    async def test_disabled_by_default(self, register, resolver):
        customer = await register("Meena")

        resolution = await resolver.resolve(customer.id[:20])

        assert not resolution.found
        assert "fuzzy_match" not in [s.step for s in resolution.trace.steps]

    async def test_substring_match_when_enabled(self, register, stores, identities):
        customer = await register("Meena")
        resolver = CrossPartitionResolver(identities, stores.profiles, fuzzy_match=True)

        resolution = await resolver.resolve(customer.id[:20])

        assert resolution.found
        assert resolution.source == "fuzzy_match"
        assert resolution.identity.account_id == customer.id


class TestStoreFailures:
    async def test_failing_partition_is_recorded_and_skipped(self, register, stores):
        tradesman = await register("Ravi", role="tradesman")
        identities = PartitionedIdentityStore(
            tradesmen=stores.tradesmen,
            customers=BrokenUserStore(Partition.CUSTOMERS),
        )
        resolver = CrossPartitionResolver(identities, stores.profiles)

        resolution = await resolver.resolve(tradesman.id, role_hint="customer")

        assert resolution.found
        assert resolution.trace.steps[0].error
        assert resolution.trace.steps[0].found is False

    async def test_require_reports_transient_when_absence_not_established(self, stores):
        identities = PartitionedIdentityStore(
            tradesmen=BrokenUserStore(Partition.TRADESMEN),
            customers=stores.customers,
        )
        resolver = CrossPartitionResolver(identities, stores.profiles)

        display = await resolver.display(str(uuid.uuid4()))
        assert display.name == UNKNOWN_USER_NAME

        with pytest.raises(TransientError):
            await resolver.require(str(uuid.uuid4()))
