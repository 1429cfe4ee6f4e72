"""
Follower / following list views.

Each row embeds its own FollowButtonController. Any committed follow change
in a row triggers a full re-read of the list and of the aggregate counts;
rows are never patched locally.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, List, Callable, Set, Coroutine, Any, Tuple

from pydantic import ValidationError

from ..cache import RelationshipCache, LIST_KINDS
from ..config import settings
from ..domain.models import FollowCounts, UserRef
from ..schemas import UserSummary
from .controller import FollowButtonController
from .service_client import FollowApi
from .toasts import Toaster

logger = logging.getLogger(__name__)


async def load_follow_counts(api: FollowApi, cache: RelationshipCache, user_id: str) -> FollowCounts:
    """Fetch counts, falling back to the cached snapshot and then zeros"""
    result = None
    try:
        result = await api.get_follow_counts(user_id)
    except Exception as e:
        logger.error(f"Error getting follow counts for {user_id}: {e}")

    if result is not None and result.success:
        counts = FollowCounts(result.followers_count, result.following_count)
        await cache.save_counts(user_id, counts)
        return counts

    cached = await cache.load_counts(user_id)
    return cached if cached is not None else FollowCounts()


@dataclass
class FollowListRow:
    user: UserSummary
    button: FollowButtonController


class _TaskOwner:
    """Tracks refresh tasks started from change callbacks"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until no refresh is in flight"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _cancel_tasks(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class FollowListView(_TaskOwner):
    """One page of followers or following for a user"""

    def __init__(
        self,
        api: FollowApi,
        cache: RelationshipCache,
        user_id: str,
        kind: str,
        current_user: Optional[UserRef],
        limit: int = settings.DEFAULT_LIST_LIMIT,
        toaster: Optional[Toaster] = None,
        on_change: Optional[Callable[[], None]] = None,
        **controller_options,
    ):
        super().__init__()
        if kind not in LIST_KINDS:
            raise ValueError(f"Unknown follow list kind: {kind}")
        self.api = api
        self.cache = cache
        self.user_id = user_id
        self.kind = kind
        self.current_user = current_user
        self.limit = limit
        self.toaster = toaster or Toaster()
        self.on_change = on_change
        self.controller_options = controller_options

        self.rows: List[FollowListRow] = []
        self.total = 0
        self.counts = FollowCounts()
        self.error: Optional[str] = None
        self.loading = False
        self._load_generation = 0

    async def _fetch(self):
        if self.kind == "followers":
            return await self.api.get_followers(self.user_id, self.limit)
        return await self.api.get_following(self.user_id, self.limit)

    async def load(self) -> None:
        """Re-read the list and rebuild every row"""
        self._load_generation += 1
        generation = self._load_generation
        self.loading = True
        try:
            users, total = await self._read_page()
            if generation != self._load_generation or self._closed:
                return
            await self._replace_rows(users)
            self.total = total
        finally:
            # A superseded load leaves the flag to the newer one
            if generation == self._load_generation or self._closed:
                self.loading = False

    async def _read_page(self) -> Tuple[List[UserSummary], int]:
        result = None
        try:
            result = await self._fetch()
        except Exception as e:
            logger.error(f"Error loading {self.kind} for {self.user_id}: {e}")

        if result is not None and result.success:
            users = list(result.users)
            self.error = None
            await self.cache.save_list(self.user_id, self.kind, [u.model_dump() for u in users])
            return users, result.total

        self.error = result.error if result is not None else f"Could not load {self.kind}"
        snapshot = await self.cache.load_list(self.user_id, self.kind)
        if not snapshot:
            return [], 0
        try:
            users = [UserSummary(**u) for u in snapshot]
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached {self.kind} list for {self.user_id}: {e}")
            return [], 0
        logger.info(f"Using cached {self.kind} list for {self.user_id}")
        return users, len(users)

    async def _replace_rows(self, users: List[UserSummary]) -> None:
        old_rows = self.rows
        self.rows = [
            FollowListRow(
                user=user,
                button=FollowButtonController(
                    self.api,
                    self.cache,
                    self.current_user,
                    UserRef(uid=user.id, username=user.username),
                    on_change=self.handle_follow_change,
                    toaster=self.toaster,
                    **self.controller_options,
                ),
            )
            for user in users
        ]
        await asyncio.gather(*(row.button.unmount() for row in old_rows))
        await asyncio.gather(*(row.button.mount() for row in self.rows))

    async def load_counts(self) -> None:
        self.counts = await load_follow_counts(self.api, self.cache, self.user_id)

    async def refresh(self) -> None:
        """Full re-read of list and counts"""
        await asyncio.gather(self.load(), self.load_counts())

    def handle_follow_change(self) -> None:
        """Change callback handed to every row's button"""
        if self._closed:
            return
        if self.on_change:
            self.on_change()
        else:
            self._spawn(self.refresh())

    async def close(self) -> None:
        self._closed = True
        await self._cancel_tasks()
        await asyncio.gather(*(row.button.unmount() for row in self.rows))


class FollowManager(_TaskOwner):
    """Followers and following tabs for one user, plus counts"""

    def __init__(
        self,
        api: FollowApi,
        cache: RelationshipCache,
        user_id: str,
        current_user: Optional[UserRef],
        limit: int = settings.FOLLOWERS_PAGE_LIMIT,
        toaster: Optional[Toaster] = None,
        **controller_options,
    ):
        super().__init__()
        self.api = api
        self.cache = cache
        self.user_id = user_id
        self.active_tab = "followers"
        self.counts = FollowCounts()
        self.views = {
            kind: FollowListView(
                api,
                cache,
                user_id,
                kind,
                current_user,
                limit=limit,
                toaster=toaster,
                on_change=self.handle_follow_change,
                **controller_options,
            )
            for kind in LIST_KINDS
        }

    @property
    def followers(self) -> FollowListView:
        return self.views["followers"]

    @property
    def following(self) -> FollowListView:
        return self.views["following"]

    @property
    def active_view(self) -> FollowListView:
        return self.views[self.active_tab]

    def select_tab(self, kind: str) -> None:
        if kind not in self.views:
            raise ValueError(f"Unknown follow list kind: {kind}")
        self.active_tab = kind

    async def load(self) -> None:
        """Load both lists and the counts concurrently"""
        await asyncio.gather(self.followers.load(), self.following.load(), self.load_counts())

    async def load_counts(self) -> None:
        self.counts = await load_follow_counts(self.api, self.cache, self.user_id)
        for view in self.views.values():
            view.counts = self.counts

    def handle_follow_change(self) -> None:
        if not self._closed:
            self._spawn(self.load())

    async def close(self) -> None:
        self._closed = True
        await self._cancel_tasks()
        await asyncio.gather(*(view.close() for view in self.views.values()))
