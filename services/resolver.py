# services/resolver.py
"""
Cross-partition identity resolution.

User accounts live in two databases chosen by role, and a customer who
registers a trade is moved from one to the other under a new id. Anything
that has to show a name for an id (conversation participants, message
senders and receivers) or check that an id names a real person goes through
CrossPartitionResolver, which probes in this order and stops at the first hit:

1. the hinted partition (role hint or partition tag on the reference), by id
2. the other partition, by id
3. both partitions by previous id (the reference is a pre-migration id)
4. trade_profiles by owner id, in either of its two representations
5. development only, when enabled: substring scan over each partition's ids
6. the "Unknown User" sentinel

Every probe is recorded in a ResolutionTrace. Lookup errors on a single
probe are recorded and the search moves on.
"""
from errors import KaarigarError, NotFoundError, TransientError
from models.identity import DisplayIdentity, IdentityRef, Resolution, ResolutionTrace
from models.user import Partition, Role, UserAccount, partition_for_role
from services.identity import PartitionedIdentityStore
from stores.base import TradeProfileStore, UserStore


class CrossPartitionResolver:
    def __init__(
        self,
        identities: PartitionedIdentityStore,
        profiles: TradeProfileStore,
        fuzzy_match: bool = False,
    ):
        self.identities = identities
        self.profiles = profiles
        # Development-only heuristic; the caller (config) decides whether it may be on
        self.fuzzy_match = fuzzy_match
        # One resolver per request, so this never outlives a request
        self._cache: dict[tuple[str, Partition | None], Resolution] = {}

    async def resolve(self, ref: IdentityRef | str, role_hint: Role | str | None = None) -> Resolution:
        """Best-effort display identity. Never raises for an unknown reference."""
        if not isinstance(ref, IdentityRef):
            ref = IdentityRef.parse(ref)
        hint = ref.partition or partition_for_role(role_hint)

        cache_key = (ref.key, hint)
        if cache_key in self._cache:
            return self._cache[cache_key]

        resolution = await self._search(ref, hint)
        self._cache[cache_key] = resolution
        return resolution

    async def require(self, ref: IdentityRef | str, role_hint: Role | str | None = None) -> Resolution:
        """Like resolve(), but an unresolved reference is an error for feature logic."""
        resolution = await self.resolve(ref, role_hint)
        if resolution.found:
            return resolution
        if resolution.trace.had_transient_failure:
            # Absence was never established, so this is not a NotFound
            raise TransientError(trace=resolution.trace)
        raise NotFoundError("User not found", trace=resolution.trace)

    async def aliases(self, ref: IdentityRef | str, role_hint: Role | str | None = None) -> frozenset[str]:
        resolution = await self.resolve(ref, role_hint)
        return resolution.aliases

    async def display(self, ref: IdentityRef | str, role_hint: Role | str | None = None) -> DisplayIdentity:
        return (await self.resolve(ref, role_hint)).identity

    # ------------------------------------------------------------------

    async def _search(self, ref: IdentityRef, hint: Partition | None) -> Resolution:
        trace = ResolutionTrace(reference=ref.key)

        # 1 + 2. By id, hinted partition first
        for index, partition in enumerate(self.identities.search_order(hint)):
            step = "hinted_partition" if hint is not None and index == 0 else "partition_by_id"
            store = self.identities.partition(partition)
            account = await self._probe(trace, step, partition, store.find_by_id, ref.key)
            if account:
                return self._from_account(ref, account, partition, step, trace)

        # 3. The reference may be the id a migrated account was created from
        for partition in (Partition.TRADESMEN, Partition.CUSTOMERS):
            store = self.identities.partition(partition)
            account = await self._probe(trace, "previous_id", partition, store.find_by_previous_id, ref.key)
            if account:
                return self._from_account(ref, account, partition, "previous_id", trace)

        # 4. The account may be gone while its trade profile survived
        profile = await self._probe(trace, "trade_profile", Partition.TRADESMEN, self.profiles.find_by_owner, ref.key)
        if profile:
            identity = DisplayIdentity(
                id=ref.key,
                name=profile.name or DisplayIdentity.unknown(ref.key).name,
                email=profile.email or "",
                role=Role.TRADESMAN,
                partition=Partition.TRADESMEN,
                account_id=profile.owner_user_id,
            )
            return Resolution(
                identity=identity,
                found=True,
                source="trade_profile",
                trace=trace,
                aliases=frozenset({ref.key, profile.owner_user_id}),
            )

        # 5. Papers over id-encoding bugs; never enabled outside development
        if self.fuzzy_match:
            for partition in self.identities.search_order(hint):
                store = self.identities.partition(partition)
                account = await self._probe(
                    trace, "fuzzy_match", partition, lambda key, s=store: self._fuzzy_lookup(s, key), ref.key
                )
                if account:
                    return self._from_account(ref, account, partition, "fuzzy_match", trace)

        # 6. Display callers get a placeholder instead of an error
        return Resolution(
            identity=DisplayIdentity.unknown(ref.key),
            found=False,
            source=None,
            trace=trace,
            aliases=frozenset({ref.key}),
        )

    @staticmethod
    async def _probe(trace: ResolutionTrace, step: str, partition: Partition, lookup, key: str):
        try:
            result = await lookup(key)
        except KaarigarError as e:
            trace.record(step, partition, False, error=e, transient=isinstance(e, TransientError))
            return None
        trace.record(step, partition, result is not None)
        return result

    @staticmethod
    async def _fuzzy_lookup(store: UserStore, key: str) -> UserAccount | None:
        for candidate in await store.list_ids():
            if candidate in key or key in candidate:
                return await store.find_by_id(candidate)
        return None

    @staticmethod
    def _from_account(
        ref: IdentityRef, account: UserAccount, partition: Partition, source: str, trace: ResolutionTrace
    ) -> Resolution:
        identity = DisplayIdentity(
            id=ref.key,
            name=account.name,
            email=account.email,
            role=account.role,
            partition=partition,
            account_id=account.id,
        )
        aliases = {ref.key, account.id}
        if account.migrated_from_id:
            aliases.add(account.migrated_from_id)
        return Resolution(identity=identity, found=True, source=source, trace=trace, aliases=frozenset(aliases))
