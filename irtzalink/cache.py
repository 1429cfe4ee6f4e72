"""
Local relationship cache.

Best-effort, TTL-bounded storage of relationship tags, follow counts and
follower/following list snapshots. An in-memory index sits in front of a
persisted key-value store; entries outlive sign-out on purpose. Any storage
failure is logged and treated as a miss, never raised to the caller.
"""
import asyncio
import json
import logging
import time
from typing import Optional, List, Dict, Any, Callable, Tuple

from .config import settings
from .domain.models import Relationship, FollowCounts, CacheEntry
from .domain.repositories import IKeyValueStore
from .domain.transitions import derive_reverse_guess, mirror

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = "1.0"
LIST_KINDS = ("followers", "following")
NAMESPACES = ("follow", "counts") + LIST_KINDS


class RelationshipCache:
    """Relationship/count/list cache over a shared key-value store"""

    def __init__(
        self,
        store: IKeyValueStore,
        clock: Callable[[], float] = time.time,
        prefix: str = settings.CACHE_KEY_PREFIX,
    ):
        self.store = store
        self.clock = clock
        self.prefix = prefix
        self._memory: Dict[Tuple[str, str], CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None

    # Keys
    def _relationship_key(self, user_id: str, target_user_id: str) -> str:
        """Generate cache key for a directed relationship"""
        return f"{self.prefix}:follow:{user_id}:{target_user_id}"

    def _counts_key(self, user_id: str) -> str:
        """Generate cache key for follow counts"""
        return f"{self.prefix}:counts:{user_id}"

    def _list_key(self, user_id: str, kind: str) -> str:
        """Generate cache key for a followers/following snapshot"""
        if kind not in LIST_KINDS:
            raise ValueError(f"Unknown follow list kind: {kind}")
        return f"{self.prefix}:{kind}:{user_id}"

    # Persistence helpers
    async def _read(self, key: str, ttl: float) -> Optional[Dict[str, Any]]:
        """Read a JSON entry, discarding it when expired or unparseable"""
        try:
            raw = await self.store.get_item(key)
        except Exception as e:
            logger.error(f"Error reading cache key {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
            timestamp = float(data["timestamp"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            await self._remove(key)
            return None

        if self.clock() - timestamp > ttl:
            logger.debug(f"Cache entry {key} expired")
            await self._remove(key)
            return None

        return data

    async def _write(self, key: str, payload: Dict[str, Any]) -> None:
        payload["timestamp"] = self.clock()
        try:
            await self.store.set_item(key, json.dumps(payload))
        except Exception as e:
            logger.error(f"Error writing cache key {key}: {e}")

    async def _remove(self, key: str) -> None:
        try:
            await self.store.remove_item(key)
        except Exception as e:
            logger.error(f"Error removing cache key {key}: {e}")

    # Relationships
    async def save(self, user_id: str, target_user_id: str, relationship: Relationship) -> None:
        """Save a directed relationship tag"""
        relationship = Relationship(relationship)
        self._memory[(user_id, target_user_id)] = CacheEntry(relationship, self.clock())
        await self._write(
            self._relationship_key(user_id, target_user_id),
            {"relationship": relationship.value, "version": CACHE_FORMAT_VERSION},
        )
        logger.debug(f"Saved follow relationship: {user_id} -> {target_user_id} = {relationship.value}")

    async def load(self, user_id: str, target_user_id: str) -> Optional[Relationship]:
        """Load a directed relationship tag, None when absent or expired"""
        ttl = settings.CACHE_TTL_RELATIONSHIP
        entry = self._memory.get((user_id, target_user_id))
        if entry is not None:
            if not entry.is_expired(self.clock(), ttl):
                return entry.relationship
            del self._memory[(user_id, target_user_id)]

        key = self._relationship_key(user_id, target_user_id)
        data = await self._read(key, ttl)
        if data is None:
            return None

        try:
            relationship = Relationship(data["relationship"])
        except (ValueError, KeyError) as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            await self._remove(key)
            return None

        self._memory[(user_id, target_user_id)] = CacheEntry(relationship, float(data["timestamp"]))
        return relationship

    async def clear(self, user_id: str, target_user_id: str) -> None:
        """Force the next load of this pair to miss"""
        self._memory.pop((user_id, target_user_id), None)
        await self._remove(self._relationship_key(user_id, target_user_id))
        logger.debug(f"Cleared cached follow relationship: {user_id} -> {target_user_id}")

    async def update(
        self, user_id: str, target_user_id: str, new_relationship: Relationship
    ) -> Relationship:
        """
        Write-through after a follow/unfollow.

        Also writes a speculative reverse entry (target -> viewer) derived by
        derive_reverse_guess. Best-effort, not authoritative: it can diverge
        from the store if the target changes their own edge meanwhile.

        Returns:
            The forward tag actually written
        """
        prior_reverse = await self.load(target_user_id, user_id)
        reverse = derive_reverse_guess(Relationship(new_relationship), prior_reverse)
        forward = mirror(reverse)
        await self.save(user_id, target_user_id, forward)
        await self.save(target_user_id, user_id, reverse)
        return forward

    # Counts
    async def save_counts(self, user_id: str, counts: FollowCounts) -> None:
        """Save aggregate follow counts"""
        await self._write(
            self._counts_key(user_id),
            {
                "followersCount": counts.followers_count,
                "followingCount": counts.following_count,
            },
        )

    async def load_counts(self, user_id: str) -> Optional[FollowCounts]:
        """Load aggregate follow counts (1 hour TTL)"""
        key = self._counts_key(user_id)
        data = await self._read(key, settings.CACHE_TTL_COUNTS)
        if data is None:
            return None

        try:
            return FollowCounts(
                followers_count=int(data.get("followersCount") or 0),
                following_count=int(data.get("followingCount") or 0),
            )
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            await self._remove(key)
            return None

    # List snapshots
    async def save_list(self, user_id: str, kind: str, users: List[Dict[str, Any]]) -> None:
        """Save a followers/following snapshot"""
        await self._write(self._list_key(user_id, kind), {"list": list(users or [])})

    async def load_list(self, user_id: str, kind: str) -> Optional[List[Dict[str, Any]]]:
        """Load a followers/following snapshot (30 minute TTL)"""
        key = self._list_key(user_id, kind)
        data = await self._read(key, settings.CACHE_TTL_LIST)
        if data is None:
            return None

        users = data.get("list") or []
        if not isinstance(users, list) or not all(isinstance(u, dict) for u in users):
            logger.warning(f"Discarding corrupt cache entry {key}: not a list of users")
            await self._remove(key)
            return None
        return list(users)

    # Maintenance
    async def cleanup_expired(self) -> int:
        """Delete persisted entries older than the max age or unparseable"""
        now = self.clock()
        removed = 0

        for namespace in NAMESPACES:
            try:
                keys = [key async for key in self.store.keys(f"{self.prefix}:{namespace}:*")]
            except Exception as e:
                logger.error(f"Error scanning cache namespace {namespace}: {e}")
                continue

            for key in keys:
                try:
                    raw = await self.store.get_item(key)
                    if raw is None:
                        continue
                    expired = now - float(json.loads(raw)["timestamp"]) > settings.CACHE_MAX_AGE
                except (ValueError, KeyError, TypeError):
                    expired = True
                except Exception as e:
                    logger.error(f"Error reading cache key {key} during cleanup: {e}")
                    continue

                if expired:
                    await self._remove(key)
                    removed += 1

        for pair, entry in list(self._memory.items()):
            if entry.is_expired(now, settings.CACHE_MAX_AGE):
                del self._memory[pair]

        if removed:
            logger.info(f"Cleaned up {removed} expired follow data entries")
        return removed

    async def clear_all_for_user(self, user_id: str) -> int:
        """Drop every cached entry that mentions a user"""
        removed = 0
        try:
            keys = [key async for key in self.store.keys(f"{self.prefix}:*")]
        except Exception as e:
            logger.error(f"Error scanning cache for user {user_id}: {e}")
            keys = []

        for key in keys:
            if user_id in key.split(":")[2:]:
                await self._remove(key)
                removed += 1

        for pair in [pair for pair in self._memory if user_id in pair]:
            del self._memory[pair]

        logger.info(f"Cleared all follow data for user: {user_id}")
        return removed

    async def storage_stats(self) -> Dict[str, int]:
        """Size of the persisted follow data and the in-memory index"""
        size = 0
        count = 0
        for namespace in NAMESPACES:
            try:
                async for key in self.store.keys(f"{self.prefix}:{namespace}:*"):
                    raw = await self.store.get_item(key)
                    if raw:
                        size += len(raw)
                        count += 1
            except Exception as e:
                logger.error(f"Error collecting cache stats for {namespace}: {e}")

        return {
            "follow_data_size": size,
            "follow_data_count": count,
            "memory_cache_size": len(self._memory),
        }

    # Periodic sweep
    def start_sweeper(self, interval: float = settings.CACHE_SWEEP_INTERVAL) -> None:
        """Run cleanup_expired every interval seconds until stopped"""
        if self._sweeper and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever(interval))

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.cleanup_expired()

    async def stop_sweeper(self) -> None:
        if not self._sweeper:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
