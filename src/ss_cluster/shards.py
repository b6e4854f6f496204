"""Shard range assignment for front-door processes.

Slot i of C owns shards [i * per, min((i + 1) * per, total) - 1] with
per = ceil(total / C). Trailing slots may own fewer shards, or none when
C does not divide the total evenly.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ShardRange:
    first: int
    last: int  # inclusive; last < first means the slot owns no shards

    @property
    def shard_ids(self) -> list[int]:
        return list(range(self.first, self.last + 1))

    @property
    def count(self) -> int:
        return max(self.last - self.first + 1, 0)


def shard_range_for_slot(slot_id: int, total_shards: int, cluster_count: int) -> ShardRange:
    if cluster_count <= 0 or total_shards <= 0:
        raise ValueError("total_shards and cluster_count must be positive")
    if not 0 <= slot_id < cluster_count:
        raise ValueError(f"slot_id {slot_id} out of range for {cluster_count} slots")
    per_cluster = math.ceil(total_shards / cluster_count)
    first = slot_id * per_cluster
    last = min(first + per_cluster, total_shards) - 1
    return ShardRange(first=first, last=last)
