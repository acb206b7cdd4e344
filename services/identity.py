# services/identity.py
from models.user import Partition, Role, partition_for_role
from stores.base import UserStore


class PartitionedIdentityStore:
    """
    The two user partitions behind one handle.

    No uniqueness is enforced across partitions: the same email or phone can
    exist once in each, which is what a half-finished migration looks like.
    """

    def __init__(self, tradesmen: UserStore, customers: UserStore):
        self._stores = {
            Partition.TRADESMEN: tradesmen,
            Partition.CUSTOMERS: customers,
        }

    def partition(self, partition: Partition) -> UserStore:
        return self._stores[partition]

    def for_role(self, role: Role | str) -> UserStore:
        partition = partition_for_role(role) or Partition.CUSTOMERS
        return self._stores[partition]

    @staticmethod
    def other(partition: Partition) -> Partition:
        return Partition.CUSTOMERS if partition == Partition.TRADESMEN else Partition.TRADESMEN

    def search_order(self, hint: Partition | None) -> list[Partition]:
        """Hinted partition first; tradesmen first when there is no hint."""
        first = hint or Partition.TRADESMEN
        return [first, self.other(first)]

    @property
    def tradesmen(self) -> UserStore:
        return self._stores[Partition.TRADESMEN]

    @property
    def customers(self) -> UserStore:
        return self._stores[Partition.CUSTOMERS]
