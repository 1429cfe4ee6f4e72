"""Follow button state machine."""
import asyncio

from irtzalink.client.controller import ButtonState, FollowButtonController
from irtzalink.domain.models import Relationship, UserRef
from irtzalink.domain.transitions import CacheTrustPolicy, FollowAction, MutationFailurePolicy
from irtzalink.schemas import ErrorCode, MutationResult, RelationshipResult

ALICE = UserRef("u1", "alice")
BOB = UserRef("u2", "bob")
CAROL = UserRef("u3", "carol")


def make_button(api, cache, toaster, current=ALICE, target=BOB, **options):
    options.setdefault("reconcile_delay", 0.05)
    return FollowButtonController(api, cache, current, target, toaster=toaster, **options)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def test_self_pair_renders_nothing(api, cache, toaster):
    async def scenario():
        button = make_button(api, cache, toaster, current=ALICE, target=UserRef("u1", "alice"))
        await button.mount()
        assert await button.click() is False
        return button

    button = asyncio.run(scenario())
    assert button.render() is None
    assert button.relationship == Relationship.NONE
    assert api.calls == []


def test_missing_user_renders_nothing(api, cache, toaster):
    async def scenario():
        button = make_button(api, cache, toaster, current=None)
        await button.mount()
        return button

    assert asyncio.run(scenario()).render() is None
    assert api.calls == []


def test_follow_from_none(api, cache, toaster):
    async def scenario():
        button = make_button(api, cache, toaster)
        await button.mount()
        assert button.label == "Follow"

        await button.click()
        assert button.label == "Following"
        assert api.count("get_relationship") == 1

        await button.drain()
        assert api.count("get_relationship") == 2
        assert api.calls[-1] == ("get_relationship", "u1", "u2")
        assert button.label == "Following"
        return await cache.load("u1", "u2")

    assert asyncio.run(scenario()) == Relationship.FOLLOWING
    assert toaster.messages == [("success", "Started following @bob")]


def test_follow_back_becomes_friends(api, cache, toaster, follow_service):
    async def scenario():
        await follow_service.follow("u2", "u1")
        button = make_button(api, cache, toaster)
        await button.mount()
        assert button.label == "Follow Back"
        await button.click()
        assert button.label == "Friends"
        await button.drain()
        return button

    assert asyncio.run(scenario()).label == "Friends"


def test_optimistic_state_precedes_reconciliation(api, cache, toaster, follow_service):
    async def scenario():
        await follow_service.follow("u2", "u1")
        button = make_button(api, cache, toaster, reconcile_delay=0.01)
        await button.mount()

        gate = asyncio.Event()
        api.gates["get_relationship"] = gate
        await button.click()
        await asyncio.sleep(0.05)
        # Reconciliation read has been issued but not answered
        assert api.count("get_relationship") == 2
        assert button.relationship == Relationship.FRIENDS
        assert button.state == ButtonState.IDLE

        gate.set()
        await button.drain()
        return button

    assert asyncio.run(scenario()).relationship == Relationship.FRIENDS


def test_read_failure_falls_back_to_cache(api, cache, toaster):
    async def scenario():
        await cache.save("u1", "u2", Relationship.FOLLOWING)
        api.raising.add("get_relationship")
        button = make_button(api, cache, toaster)
        await button.mount()
        return button

    button = asyncio.run(scenario())
    assert button.label == "Following"
    assert button.state == ButtonState.IDLE
    assert toaster.messages == []


def test_read_failure_without_cache_shows_follow(api, cache, toaster):
    async def scenario():
        api.results["get_relationship"] = RelationshipResult(
            success=False, code=ErrorCode.UNAVAILABLE, error="down"
        )
        button = make_button(api, cache, toaster)
        await button.mount()
        return button

    assert asyncio.run(scenario()).label == "Follow"


def test_mount_distrusts_cache(api, cache, toaster):
    async def scenario():
        await cache.save("u1", "u2", Relationship.FRIENDS)
        button = make_button(api, cache, toaster)
        await button.mount()
        return button, await cache.load("u1", "u2")

    button, cached = asyncio.run(scenario())
    assert button.label == "Follow"
    assert cached == Relationship.NONE


def test_trust_then_verify_shows_cache_first(api, cache, toaster):
    async def scenario():
        await cache.save("u1", "u2", Relationship.FOLLOWING)
        gate = asyncio.Event()
        api.gates["get_relationship"] = gate
        button = make_button(api, cache, toaster, cache_trust_policy=CacheTrustPolicy.TRUST_THEN_VERIFY)
        await button.mount()
        assert button.label == "Following"
        assert button.state == ButtonState.IDLE

        gate.set()
        await button.drain()
        return button

    assert asyncio.run(scenario()).label == "Follow"


def test_spinner_while_checking(api, cache, toaster):
    async def scenario():
        gate = asyncio.Event()
        api.gates["get_relationship"] = gate
        button = make_button(api, cache, toaster)
        mounting = asyncio.create_task(button.mount())
        await settle()
        view = button.render()
        assert button.state == ButtonState.CHECKING
        assert view.busy and view.disabled and view.action is None
        assert await button.click() is False
        gate.set()
        await mounting
        return button

    view = asyncio.run(scenario()).render()
    assert view.text == "Follow" and view.action == FollowAction.FOLLOW and not view.busy


def test_double_click_ignored_while_mutating(api, cache, toaster):
    async def scenario():
        button = make_button(api, cache, toaster)
        await button.mount()
        gate = asyncio.Event()
        api.gates["follow"] = gate

        first = asyncio.create_task(button.click())
        await settle()
        assert button.state == ButtonState.MUTATING
        assert button.render().disabled
        second = await button.click()

        gate.set()
        assert await first is True
        await button.drain()
        return second

    assert asyncio.run(scenario()) is False
    assert api.count("follow") == 1


def test_unfollow_friend_reconciles_to_follow_back(api, cache, toaster, follow_service):
    async def scenario():
        await follow_service.follow("u1", "u2")
        await follow_service.follow("u2", "u1")
        button = make_button(api, cache, toaster)
        await button.mount()
        assert button.label == "Friends"
        assert button.render().hover_text == "Unfollow"

        await button.click()
        assert button.relationship == Relationship.NONE
        await button.drain()
        return button

    assert asyncio.run(scenario()).label == "Follow Back"
    assert toaster.messages == [("success", "Unfollowed @bob")]


def test_rejected_mutation_resyncs(api, cache, toaster):
    changes = []

    async def scenario():
        button = make_button(api, cache, toaster, on_change=lambda: changes.append(1))
        await button.mount()
        api.results["follow"] = MutationResult(success=False, code=ErrorCode.UNAUTHENTICATED, error="Sign in first")
        await button.click()
        return button

    button = asyncio.run(scenario())
    assert toaster.messages == [("error", "Sign in first")]
    assert api.count("get_relationship") == 2
    assert button.label == "Follow"
    assert changes == []


def test_network_failure_is_optimistic_by_default(api, cache, toaster):
    changes = []

    async def scenario():
        button = make_button(api, cache, toaster, on_change=lambda: changes.append(1))
        await button.mount()
        api.raising.add("follow")
        await button.click()
        assert button.label == "Following"
        assert await cache.load("u1", "u2") == Relationship.FOLLOWING
        await button.drain()
        return button

    button = asyncio.run(scenario())
    assert toaster.kinds() == ["info"]
    assert changes == [1]
    # The follow never reached the store, so reconciliation undoes it
    assert button.label == "Follow"


def test_network_failure_correctness_first(api, cache, toaster):
    changes = []

    async def scenario():
        button = make_button(
            api,
            cache,
            toaster,
            on_change=lambda: changes.append(1),
            failure_policy=MutationFailurePolicy.CORRECTNESS_FIRST,
        )
        await button.mount()
        api.raising.add("follow")
        await button.click()
        return button

    button = asyncio.run(scenario())
    assert toaster.kinds() == ["error"]
    assert changes == []
    assert button.label == "Follow"
    assert api.count("get_relationship") == 2


def test_on_change_after_commit(api, cache, toaster):
    changes = []

    async def scenario():
        button = make_button(api, cache, toaster, on_change=lambda: changes.append(button.relationship))
        await button.mount()
        await button.click()
        await button.unmount()

    asyncio.run(scenario())
    assert changes == [Relationship.FOLLOWING]


def test_reconciliation_after_unmount_is_dropped(api, cache, toaster):
    async def scenario():
        button = make_button(api, cache, toaster, reconcile_delay=0.02)
        await button.mount()
        await button.click()
        await button.unmount()
        await asyncio.sleep(0.05)
        return button

    button = asyncio.run(scenario())
    assert api.count("get_relationship") == 1
    assert button.relationship == Relationship.FOLLOWING


def test_unmount_during_check_keeps_state(api, cache, toaster, follow_service):
    async def scenario():
        await follow_service.follow("u1", "u2")
        gate = asyncio.Event()
        api.gates["get_relationship"] = gate
        button = make_button(api, cache, toaster)
        mounting = asyncio.create_task(button.mount())
        await settle()
        await button.unmount()
        gate.set()
        await mounting
        return button, await cache.load("u1", "u2")

    button, cached = asyncio.run(scenario())
    assert button.relationship == Relationship.NONE
    assert cached is None


def test_identity_change_rechecks(api, cache, toaster, follow_service):
    async def scenario():
        await follow_service.follow("u3", "u1")
        button = make_button(api, cache, toaster)
        await button.mount()
        assert button.label == "Follow"
        await button.set_users(ALICE, CAROL)
        assert button.label == "Follow Back"
        await button.set_users(ALICE, CAROL)
        return button

    asyncio.run(scenario())
    assert api.count("get_relationship") == 2
    assert api.calls[-1] == ("get_relationship", "u1", "u3")


def test_default_reconciliation_waits_one_second(api, cache, toaster, monkeypatch):
    real_sleep = asyncio.sleep
    delays = []

    async def recording_sleep(delay, *args, **kwargs):
        delays.append((delay, api.count("get_relationship")))
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", recording_sleep)

    async def scenario():
        button = FollowButtonController(api, cache, ALICE, BOB, toaster=toaster)
        assert button.reconcile_delay == 1.0
        await button.mount()
        await button.click()
        await button.drain()

    asyncio.run(scenario())
    # The reconciliation read only happens after the one-second wait
    assert delays == [(1.0, 1)]
    assert api.count("get_relationship") == 2
