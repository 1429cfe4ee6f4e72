"""
Follow button controller.

One instance per rendered button, bound to a (current user, target user)
pair. States: checking -> idle:<relationship> <-> mutating. Mutations are
applied optimistically, written through to the relationship cache, then
re-read from the server after a fixed delay. Nothing here coordinates with
other controllers; the reverse-edge guess written to the cache can race.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable, Set, Coroutine, Any

from ..cache import RelationshipCache
from ..config import settings
from ..domain.models import Relationship, UserRef
from ..domain.transitions import (
    BUTTON_CONFIGS,
    CacheTrustPolicy,
    FollowAction,
    MutationFailurePolicy,
    action_for,
    next_after,
    optimistic_on_network_failure,
)
from .service_client import FollowApi
from .toasts import Toaster

logger = logging.getLogger(__name__)


class ButtonState(str, Enum):
    """Controller lifecycle state"""
    CHECKING = "checking"
    IDLE = "idle"
    MUTATING = "mutating"


@dataclass(frozen=True)
class ButtonView:
    """What a UI should draw for the button"""
    text: str
    action: Optional[FollowAction]
    hover_text: Optional[str] = None
    disabled: bool = False
    busy: bool = False


SPINNER = ButtonView(text="", action=None, disabled=True, busy=True)


class FollowButtonController:
    """State machine behind a Follow / Following / Follow Back / Friends button"""

    def __init__(
        self,
        api: FollowApi,
        cache: RelationshipCache,
        current_user: Optional[UserRef],
        target_user: Optional[UserRef],
        on_change: Optional[Callable[[], None]] = None,
        toaster: Optional[Toaster] = None,
        cache_trust_policy: CacheTrustPolicy = CacheTrustPolicy(settings.CACHE_TRUST_POLICY),
        failure_policy: MutationFailurePolicy = MutationFailurePolicy(settings.MUTATION_FAILURE_POLICY),
        reconcile_delay: float = settings.RECONCILE_DELAY_SECONDS,
    ):
        self.api = api
        self.cache = cache
        self.current_user = current_user
        self.target_user = target_user
        self.on_change = on_change
        self.toaster = toaster or Toaster()
        self.cache_trust_policy = cache_trust_policy
        self.failure_policy = failure_policy
        self.reconcile_delay = reconcile_delay

        self.state = ButtonState.CHECKING
        self.relationship = Relationship.NONE
        self._mounted = False
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    # Identity
    @property
    def actionable(self) -> bool:
        """False for missing users or a self pair: nothing to render"""
        return bool(
            self.current_user
            and self.target_user
            and self.current_user.uid
            and self.target_user.uid
            and self.current_user.uid != self.target_user.uid
        )

    def _pair(self):
        return self.current_user.uid, self.target_user.uid

    def _live(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    # Lifecycle
    async def mount(self) -> None:
        """Start checking the relationship for the current pair"""
        self._mounted = True
        await self._enter()

    async def set_users(self, current_user: Optional[UserRef], target_user: Optional[UserRef]) -> None:
        """Rebind to another pair; re-enters checking when the ids changed"""
        same = (
            (current_user.uid if current_user else None) == (self.current_user.uid if self.current_user else None)
            and (target_user.uid if target_user else None) == (self.target_user.uid if self.target_user else None)
        )
        self.current_user = current_user
        self.target_user = target_user
        if same or not self._mounted:
            return
        self._cancel_tasks()
        await self._enter()

    async def unmount(self) -> None:
        """Stop; late reconciliation results are dropped"""
        self._mounted = False
        self._generation += 1
        tasks = self._cancel_tasks()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def drain(self) -> None:
        """Wait for scheduled reconciliation reads to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _cancel_tasks(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        return tasks

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _enter(self) -> None:
        self._generation += 1
        generation = self._generation

        if not self.actionable:
            self.relationship = Relationship.NONE
            self.state = ButtonState.IDLE
            return

        viewer_id, target_id = self._pair()

        cached = await self.cache.load(viewer_id, target_id)
        if self.cache_trust_policy == CacheTrustPolicy.TRUST_THEN_VERIFY:
            if cached is not None and self._live(generation):
                logger.debug(f"Using cached relationship {viewer_id} -> {target_id}: {cached.value}")
                self.relationship = cached
                self.state = ButtonState.IDLE
                self._spawn(self._check_relationship(generation, background=True))
                return
        else:
            # Never show the cached tag first; it only answers if the read fails
            await self.cache.clear(viewer_id, target_id)

        await self._check_relationship(generation, fallback=cached)

    async def _check_relationship(
        self, generation: int, background: bool = False, fallback: Optional[Relationship] = None
    ) -> None:
        """Authoritative read; falls back to the cache on any failure"""
        if not self._live(generation):
            return
        if not background:
            self.state = ButtonState.CHECKING

        viewer_id, target_id = self._pair()
        result = None
        try:
            result = await self.api.get_relationship(viewer_id, target_id)
        except Exception as e:
            logger.error(f"Error checking relationship {viewer_id} -> {target_id}: {e}")

        if not self._live(generation):
            return
        if background and self.state == ButtonState.MUTATING:
            # A newer click owns the state now
            return

        if result is not None and result.success and result.relationship is not None:
            self.relationship = Relationship(result.relationship)
            await self.cache.save(viewer_id, target_id, self.relationship)
        else:
            if result is not None:
                logger.warning(f"Failed to get relationship {viewer_id} -> {target_id}: {result.error}")
            cached = await self.cache.load(viewer_id, target_id)
            if cached is None:
                cached = fallback
            if cached is not None:
                logger.info(f"Using cached relationship {viewer_id} -> {target_id}: {cached.value}")
            self.relationship = cached if cached is not None else Relationship.NONE

        if self._live(generation):
            self.state = ButtonState.IDLE

    async def _reconcile(self, generation: int) -> None:
        await asyncio.sleep(self.reconcile_delay)
        await self._check_relationship(generation, background=True)

    # Actions
    async def click(self) -> bool:
        """
        Run the primary action for the displayed relationship

        Returns:
            False when the click was ignored (nothing rendered, checking, or
            a mutation already in flight)
        """
        if not self.actionable or not self._mounted or self.state != ButtonState.IDLE:
            return False

        generation = self._generation
        prior = self.relationship
        action = action_for(prior)
        viewer_id, target_id = self._pair()
        username = self.target_user.username or target_id
        self.state = ButtonState.MUTATING

        try:
            if action == FollowAction.FOLLOW:
                result = await self.api.follow(viewer_id, target_id)
            else:
                result = await self.api.unfollow(viewer_id, target_id)
        except Exception as e:
            logger.error(f"Error during {action.value} {viewer_id} -> {target_id}: {e}")
            await self._after_network_failure(generation, action, prior, username)
            return True

        if not self._live(generation):
            return True

        if result.success:
            await self._commit(next_after(action, prior), viewer_id, target_id)
            if action == FollowAction.FOLLOW:
                self.toaster.success(f"Started following @{username}")
            else:
                self.toaster.success(f"Unfollowed @{username}")
            self._schedule_reconcile(generation)
            self._notify_change()
        else:
            logger.warning(f"{action.value} failed for {viewer_id} -> {target_id}: {result.error}")
            self.toaster.error(result.error or f"Failed to {action.value} user")
            # Do not trust the optimistic guess; re-read
            await self._check_relationship(generation)
        return True

    async def _commit(self, relationship: Relationship, viewer_id: str, target_id: str) -> None:
        self.relationship = relationship
        self.state = ButtonState.IDLE
        await self.cache.update(viewer_id, target_id, relationship)

    async def _after_network_failure(
        self, generation: int, action: FollowAction, prior: Relationship, username: str
    ) -> None:
        if not self._live(generation):
            return

        guess = optimistic_on_network_failure(self.failure_policy, action, prior)
        if guess is None:
            self.toaster.error(f"Failed to {action.value} user")
            await self._check_relationship(generation)
            return

        viewer_id, target_id = self._pair()
        await self._commit(guess, viewer_id, target_id)
        if action == FollowAction.FOLLOW:
            self.toaster.info(f"Following @{username}, will sync when back online")
        else:
            self.toaster.info(f"Unfollowed @{username}, will sync when back online")
        self._schedule_reconcile(generation)
        self._notify_change()

    def _schedule_reconcile(self, generation: int) -> None:
        self._spawn(self._reconcile(generation))

    def _notify_change(self) -> None:
        if not self.on_change:
            return
        try:
            self.on_change()
        except Exception as e:
            logger.error(f"Follow change callback failed: {e}")

    # Rendering
    def render(self) -> Optional[ButtonView]:
        """Button to draw, or None when there is nothing to follow"""
        if not self.actionable:
            return None
        if self.state == ButtonState.CHECKING:
            return SPINNER

        config = BUTTON_CONFIGS[self.relationship]
        busy = self.state == ButtonState.MUTATING
        return ButtonView(
            text=config.text,
            action=config.action,
            hover_text=config.hover_text,
            disabled=busy,
            busy=busy,
        )

    @property
    def label(self) -> Optional[str]:
        view = self.render()
        return view.text if view else None
