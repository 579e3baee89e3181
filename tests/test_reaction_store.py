"""Tests for like/dislike toggling in ``ReactionStore``."""
from __future__ import annotations

import asyncio

from conftest import ALICE, BOB
from postboard.constants import DISLIKES_TABLE, LIKES_TABLE
from postboard.schemas import ReactionState, ServiceErrorCode
from postboard.services import PostStore, ReactionStore


def _stores(remote, *, rollback: bool = False) -> tuple[PostStore, ReactionStore]:
    posts = PostStore(remote)
    reactions = ReactionStore(remote, posts, rollback_on_error=rollback)
    asyncio.run(posts.fetch_posts())
    return posts, reactions


def _counts(posts: PostStore, post_id: int) -> tuple[int, int]:
    post = posts.get_post(post_id)
    assert post is not None
    return post.likes_count, post.dislikes_count


def test_toggle_requires_signed_in_user(remote):
    posts, reactions = _stores(remote)

    result = asyncio.run(reactions.toggle_like(1))

    assert result.applied is False
    assert result.error is not None
    assert result.error.code is ServiceErrorCode.AUTH_REQUIRED
    assert reactions.user_likes == frozenset()
    assert _counts(posts, 1) == (3, 1)
    assert ("insert", LIKES_TABLE) not in remote.calls


def test_dislike_then_like_switches_reaction(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    disliked = asyncio.run(reactions.toggle_dislike(1))
    assert disliked.ok and disliked.state is ReactionState.DISLIKED
    assert reactions.user_dislikes == frozenset({1})
    assert _counts(posts, 1) == (3, 2)

    liked = asyncio.run(reactions.toggle_like(1))
    assert liked.ok and liked.state is ReactionState.LIKED
    assert reactions.user_likes == frozenset({1})
    assert reactions.user_dislikes == frozenset()
    assert _counts(posts, 1) == (4, 1)


def test_switch_keeps_backend_rows_exclusive(remote):
    _, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    asyncio.run(reactions.toggle_dislike(1))
    asyncio.run(reactions.toggle_like(1))

    likes = asyncio.run(remote.select(LIKES_TABLE, filters={"user_id": BOB}))
    dislikes = asyncio.run(remote.select(DISLIKES_TABLE, filters={"user_id": BOB}))
    assert [row["post_id"] for row in likes] == [1]
    assert dislikes == []
    # Opposite row is removed before the new one is written.
    writes = [call for call in remote.calls if call[0] != "select"]
    assert writes[-2:] == [("delete", DISLIKES_TABLE), ("insert", LIKES_TABLE)]


def test_double_like_round_trips_to_neutral(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    asyncio.run(reactions.toggle_like(2))
    assert reactions.state_for(2) is ReactionState.LIKED
    assert _counts(posts, 2) == (1, 0)

    result = asyncio.run(reactions.toggle_like(2))
    assert result.state is ReactionState.NEUTRAL
    assert _counts(posts, 2) == (0, 0)
    assert asyncio.run(remote.count(LIKES_TABLE, filters={"post_id": 2})) == 0


def test_sets_stay_disjoint_over_any_sequence(remote):
    _, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    for action in ["like", "dislike", "dislike", "like", "like", "dislike", "like"]:
        toggle = reactions.toggle_like if action == "like" else reactions.toggle_dislike
        asyncio.run(toggle(1))
        assert not (reactions.user_likes & reactions.user_dislikes)


def test_load_for_user_reads_both_tables(remote):
    asyncio.run(remote.insert(LIKES_TABLE, {"user_id": BOB, "post_id": 1}))
    asyncio.run(remote.insert(DISLIKES_TABLE, {"user_id": BOB, "post_id": 2}))
    asyncio.run(remote.insert(LIKES_TABLE, {"user_id": ALICE, "post_id": 2}))
    _, reactions = _stores(remote)

    asyncio.run(reactions.load_for_user(BOB))

    assert reactions.user_likes == frozenset({1})
    assert reactions.user_dislikes == frozenset({2})


def test_conflicting_rows_keep_the_like(remote):
    asyncio.run(remote.insert(LIKES_TABLE, {"user_id": BOB, "post_id": 1}))
    asyncio.run(remote.insert(DISLIKES_TABLE, {"user_id": BOB, "post_id": 1}))
    _, reactions = _stores(remote)

    asyncio.run(reactions.load_for_user(BOB))

    assert reactions.state_for(1) is ReactionState.LIKED
    assert reactions.user_dislikes == frozenset()


def test_second_toggle_on_same_post_is_ignored_while_in_flight(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    async def scenario():
        remote.gate = asyncio.Event()
        first = asyncio.create_task(reactions.toggle_like(1))
        other = asyncio.create_task(reactions.toggle_like(2))
        await asyncio.sleep(0)
        assert reactions.loading_post_ids == frozenset({1, 2})

        ignored = await reactions.toggle_dislike(1)
        assert ignored.applied is False
        assert ignored.error is None
        assert ignored.state is ReactionState.LIKED

        remote.gate.set()
        return await first, await other

    first, other = asyncio.run(scenario())

    assert first.ok and other.ok
    assert reactions.loading is False
    assert reactions.user_likes == frozenset({1, 2})
    assert reactions.user_dislikes == frozenset()
    assert _counts(posts, 1) == (4, 1)


def test_failed_write_keeps_optimistic_state_by_default(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))
    remote.failures.add(("insert", LIKES_TABLE))

    result = asyncio.run(reactions.toggle_like(1))

    assert result.error is not None
    assert result.error.code is ServiceErrorCode.REMOTE
    assert reactions.user_likes == frozenset({1})
    assert _counts(posts, 1) == (4, 1)
    assert reactions.is_loading(1) is False


def test_failed_write_rolls_back_when_enabled(remote):
    posts, reactions = _stores(remote, rollback=True)
    asyncio.run(reactions.load_for_user(BOB))
    remote.failures.add(("insert", LIKES_TABLE))

    result = asyncio.run(reactions.toggle_like(1))

    assert result.error is not None
    assert result.state is ReactionState.NEUTRAL
    assert reactions.user_likes == frozenset()
    assert _counts(posts, 1) == (3, 1)


def test_partial_switch_rolls_back_to_neutral(remote):
    posts, reactions = _stores(remote, rollback=True)
    asyncio.run(reactions.load_for_user(BOB))
    asyncio.run(reactions.toggle_dislike(1))
    assert _counts(posts, 1) == (3, 2)
    remote.failures.add(("insert", LIKES_TABLE))

    result = asyncio.run(reactions.toggle_like(1))

    assert result.error is not None
    assert result.error.code is ServiceErrorCode.PARTIAL_WRITE
    assert result.state is ReactionState.NEUTRAL
    assert reactions.user_likes == frozenset()
    assert reactions.user_dislikes == frozenset()
    assert _counts(posts, 1) == (3, 1)
    assert asyncio.run(remote.count(DISLIKES_TABLE, filters={"user_id": BOB})) == 0


def test_clear_drops_user_state(remote):
    _, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))
    asyncio.run(reactions.toggle_like(1))

    reactions.clear()

    assert reactions.user_id is None
    assert reactions.user_likes == frozenset()
    assert reactions.state_for(1) is ReactionState.NEUTRAL


def test_like_then_dislike_moves_one_count_across(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    asyncio.run(reactions.toggle_like(1))
    assert _counts(posts, 1) == (4, 1)

    result = asyncio.run(reactions.toggle_dislike(1))

    assert result.ok and result.state is ReactionState.DISLIKED
    assert reactions.user_likes == frozenset()
    assert reactions.user_dislikes == frozenset({1})
    assert _counts(posts, 1) == (3, 2)


def test_partial_switch_keeps_optimistic_state_without_rollback(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))
    asyncio.run(reactions.toggle_dislike(1))
    remote.failures.add(("insert", LIKES_TABLE))

    result = asyncio.run(reactions.toggle_like(1))

    assert result.error.code is ServiceErrorCode.PARTIAL_WRITE
    assert result.state is ReactionState.LIKED
    assert reactions.user_likes == frozenset({1})
    assert reactions.user_dislikes == frozenset()
    assert _counts(posts, 1) == (4, 1)


def test_switch_still_inserts_when_removing_opposite_fails(remote):
    posts, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))
    asyncio.run(reactions.toggle_dislike(1))
    remote.failures.add(("delete", DISLIKES_TABLE))

    result = asyncio.run(reactions.toggle_like(1))

    writes = [call for call in remote.calls if call[0] != "select"]
    assert writes[-2:] == [("delete", DISLIKES_TABLE), ("insert", LIKES_TABLE)]
    assert result.error.code is ServiceErrorCode.PARTIAL_WRITE
    assert result.state is ReactionState.LIKED
    assert asyncio.run(remote.count(LIKES_TABLE, filters={"user_id": BOB, "post_id": 1})) == 1
    assert _counts(posts, 1) == (4, 1)


def test_switch_with_both_writes_failing_is_a_remote_error(remote):
    posts, reactions = _stores(remote, rollback=True)
    asyncio.run(reactions.load_for_user(BOB))
    asyncio.run(reactions.toggle_dislike(1))
    remote.failures.update({("delete", DISLIKES_TABLE), ("insert", LIKES_TABLE)})

    result = asyncio.run(reactions.toggle_like(1))

    assert result.error.code is ServiceErrorCode.REMOTE
    assert result.state is ReactionState.DISLIKED
    assert _counts(posts, 1) == (3, 2)


def test_clear_keeps_pending_toggle_in_flight(remote):
    _, reactions = _stores(remote)
    asyncio.run(reactions.load_for_user(BOB))

    async def scenario():
        remote.gate = asyncio.Event()
        pending = asyncio.create_task(reactions.toggle_like(1))
        await asyncio.sleep(0)

        reactions.clear()
        await reactions.load_for_user(ALICE)
        ignored = await reactions.toggle_like(1)
        still_loading = reactions.is_loading(1)

        remote.gate.set()
        await pending
        return ignored, still_loading

    ignored, still_loading = asyncio.run(scenario())

    assert ignored.applied is False
    assert still_loading is True
    assert reactions.is_loading(1) is False
