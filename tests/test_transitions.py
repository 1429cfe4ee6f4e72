"""Relationship algebra: classification, button table and optimistic transitions."""
import pytest

from irtzalink.domain.models import Relationship
from irtzalink.domain.transitions import (
    BUTTON_CONFIGS,
    FollowAction,
    MutationFailurePolicy,
    action_for,
    classify,
    derive_reverse_guess,
    mirror,
    next_after,
    next_after_follow,
    next_after_unfollow,
    optimistic_on_network_failure,
)


@pytest.mark.parametrize(
    "viewer_follows,target_follows,expected",
    [
        (False, False, Relationship.NONE),
        (True, False, Relationship.FOLLOWING),
        (False, True, Relationship.FOLLOWER),
        (True, True, Relationship.FRIENDS),
    ],
)
def test_classify(viewer_follows, target_follows, expected):
    tag = classify(viewer_follows, target_follows)
    assert tag == expected
    assert tag.viewer_follows is viewer_follows
    assert tag.target_follows is target_follows


def test_mirror_swaps_direction():
    assert mirror(Relationship.FOLLOWING) == Relationship.FOLLOWER
    assert mirror(Relationship.FOLLOWER) == Relationship.FOLLOWING
    assert mirror(Relationship.FRIENDS) == Relationship.FRIENDS
    assert mirror(Relationship.NONE) == Relationship.NONE


def test_button_labels():
    labels = {tag: config.text for tag, config in BUTTON_CONFIGS.items()}
    assert labels == {
        Relationship.NONE: "Follow",
        Relationship.FOLLOWING: "Following",
        Relationship.FOLLOWER: "Follow Back",
        Relationship.FRIENDS: "Friends",
    }
    assert BUTTON_CONFIGS[Relationship.FOLLOWING].hover_text == "Unfollow"
    assert BUTTON_CONFIGS[Relationship.FRIENDS].hover_text == "Unfollow"


def test_primary_action():
    assert action_for(Relationship.NONE) == FollowAction.FOLLOW
    assert action_for(Relationship.FOLLOWER) == FollowAction.FOLLOW
    assert action_for(Relationship.FOLLOWING) == FollowAction.UNFOLLOW
    assert action_for(Relationship.FRIENDS) == FollowAction.UNFOLLOW


def test_follow_back_becomes_friends():
    assert next_after_follow(Relationship.FOLLOWER) == Relationship.FRIENDS
    assert next_after_follow(Relationship.NONE) == Relationship.FOLLOWING


def test_unfollow_always_none():
    assert next_after_unfollow(Relationship.FRIENDS) == Relationship.NONE
    assert next_after_unfollow(Relationship.FOLLOWING) == Relationship.NONE
    assert next_after(FollowAction.UNFOLLOW, Relationship.FRIENDS) == Relationship.NONE


def test_reverse_guess_without_prior():
    assert derive_reverse_guess(Relationship.FOLLOWING, None) == Relationship.FOLLOWER
    assert derive_reverse_guess(Relationship.FRIENDS, None) == Relationship.FRIENDS
    assert derive_reverse_guess(Relationship.NONE, None) == Relationship.NONE


def test_reverse_guess_keeps_known_back_edge():
    # Target was known to follow the viewer; viewer now follows too
    assert derive_reverse_guess(Relationship.FOLLOWING, Relationship.FOLLOWING) == Relationship.FRIENDS
    # Viewer unfollowed a friend; target still follows
    assert derive_reverse_guess(Relationship.NONE, Relationship.FRIENDS) == Relationship.FOLLOWING


def test_network_failure_policies():
    assert (
        optimistic_on_network_failure(MutationFailurePolicy.OPTIMISTIC, FollowAction.FOLLOW, Relationship.NONE)
        == Relationship.FOLLOWING
    )
    assert (
        optimistic_on_network_failure(
            MutationFailurePolicy.OPTIMISTIC, FollowAction.FOLLOW, Relationship.FOLLOWER
        )
        == Relationship.FRIENDS
    )
    assert (
        optimistic_on_network_failure(
            MutationFailurePolicy.CORRECTNESS_FIRST, FollowAction.UNFOLLOW, Relationship.FOLLOWING
        )
        is None
    )
