"""
Relationship algebra shared by the service, the cache and the follow button.

Everything here is pure: no I/O, no clocks.
"""
from dataclasses import dataclass
from typing import Optional, Dict
from enum import Enum

from .models import Relationship


class FollowAction(str, Enum):
    """Primary action offered by a follow button"""
    FOLLOW = "follow"
    UNFOLLOW = "unfollow"


class CacheTrustPolicy(str, Enum):
    """How a follow button treats the local cache when it mounts"""
    DISTRUST_ON_MOUNT = "distrust-on-mount"
    TRUST_THEN_VERIFY = "trust-then-verify"


class MutationFailurePolicy(str, Enum):
    """What a follow button shows when a mutation call raises"""
    OPTIMISTIC = "optimistic"
    CORRECTNESS_FIRST = "correctness-first"


@dataclass(frozen=True)
class ButtonConfig:
    """Static rendering info for a relationship"""
    text: str
    action: FollowAction
    hover_text: Optional[str] = None


BUTTON_CONFIGS: Dict[Relationship, ButtonConfig] = {
    Relationship.NONE: ButtonConfig("Follow", FollowAction.FOLLOW),
    Relationship.FOLLOWING: ButtonConfig("Following", FollowAction.UNFOLLOW, "Unfollow"),
    Relationship.FOLLOWER: ButtonConfig("Follow Back", FollowAction.FOLLOW),
    Relationship.FRIENDS: ButtonConfig("Friends", FollowAction.UNFOLLOW, "Unfollow"),
}


def classify(viewer_follows: bool, target_follows: bool) -> Relationship:
    """Derive the relationship tag from the two directed edges"""
    if viewer_follows and target_follows:
        return Relationship.FRIENDS
    if viewer_follows:
        return Relationship.FOLLOWING
    if target_follows:
        return Relationship.FOLLOWER
    return Relationship.NONE


def mirror(relationship: Relationship) -> Relationship:
    """The same edge pair seen from the other user's side"""
    return classify(relationship.target_follows, relationship.viewer_follows)


def action_for(relationship: Relationship) -> FollowAction:
    return BUTTON_CONFIGS[relationship].action


def next_after_follow(prior: Relationship) -> Relationship:
    """Optimistic tag after a successful follow"""
    if prior == Relationship.FOLLOWER:
        return Relationship.FRIENDS
    return Relationship.FOLLOWING


def next_after_unfollow(prior: Relationship) -> Relationship:
    """Optimistic tag after a successful unfollow.

    Always ``none``, even when the target still follows the viewer; the
    delayed reconciliation read corrects it to ``follower``.
    """
    return Relationship.NONE


def next_after(action: FollowAction, prior: Relationship) -> Relationship:
    if action == FollowAction.FOLLOW:
        return next_after_follow(prior)
    return next_after_unfollow(prior)


def derive_reverse_guess(
    new_forward: Relationship, prior_reverse: Optional[Relationship]
) -> Relationship:
    """
    Guess the reverse tag (target -> viewer) after the viewer's own edge changed.

    Best-effort, not authoritative: the target may have changed their own
    edge concurrently, and nothing here can know it.

    Args:
        new_forward: Viewer's tag towards the target after the mutation
        prior_reverse: Cached tag of the target towards the viewer, if any

    Returns:
        Tag the target would see towards the viewer
    """
    viewer_follows = new_forward.viewer_follows
    target_follows = new_forward.target_follows
    # A cached reverse entry may know the target follows back when the
    # forward guess does not (e.g. "following" written instead of "friends").
    if prior_reverse is not None and prior_reverse.viewer_follows:
        target_follows = True
    return classify(target_follows, viewer_follows)


def optimistic_on_network_failure(
    policy: MutationFailurePolicy, action: FollowAction, prior: Relationship
) -> Optional[Relationship]:
    """
    Tag to display when a follow/unfollow call raised instead of answering.

    ``optimistic`` pretends the mutation went through and relies on a later
    sync; ``correctness-first`` returns None so the caller resynchronizes.
    """
    if policy == MutationFailurePolicy.OPTIMISTIC:
        return next_after(action, prior)
    return None
