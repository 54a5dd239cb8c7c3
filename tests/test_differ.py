"""Tests for snapshot diffing."""

from __future__ import annotations

import gc

import pytest

from _memfs import MemoryDirectory, MemoryFile, MemoryStore
from strata.snapshot import (
    Connection,
    InconsistentSnapshot,
    Snapshot,
    Vertex,
    build_snapshot,
    connections,
    diff_snapshots,
    summarize,
)


def _names(snapshot: Snapshot) -> list[list[list[str]]]:
    return [[[v.name for v in siblings] for siblings in level] for level in snapshot.levels]


# ── Short circuit ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_same_snapshot_diffs_to_none(pictures_root, store):
    snap = await build_snapshot(pictures_root, store)
    assert diff_snapshots(snap, snap) is None


@pytest.mark.asyncio
async def test_fresh_rebuild_diffs_to_none(pictures_root, store):
    """New vertex instances with the same identities still compare equal."""
    first = await build_snapshot(pictures_root, store)
    second = await build_snapshot(pictures_root, store)
    assert first.root is not second.root
    assert first.root == second.root
    assert diff_snapshots(second, first) is None


@pytest.mark.asyncio
async def test_snapshot_diff_method_delegates(pictures_root, store):
    snap = await build_snapshot(pictures_root, store)
    assert snap.diff(snap) is None


# ── Divergence ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unrelated_snapshots_keep_everything(store):
    left = MemoryDirectory().mkdir(["music", "rock"]).write(["notes.txt"], "a")
    right = MemoryDirectory().mkdir(["videos", "dogs"])
    current = await build_snapshot(left, store)
    previous = await build_snapshot(right, store)

    result = diff_snapshots(current, previous)

    assert result is not None
    assert _names(result) == _names(current)
    assert len(result) == len(current)
    assert not any(v.suppressed for v in result)


@pytest.mark.asyncio
async def test_first_mutation_against_empty_root(empty_root, store):
    before = await build_snapshot(empty_root, store)
    assert before.depth == 1 and len(before) == 1

    after_root = empty_root.mkdir(["pictures", "cats"])
    after = await build_snapshot(after_root, store)
    result = diff_snapshots(after, before)

    assert after.depth == 3
    assert _names(result) == [[["root"]], [["pictures"]], [["cats"]]]
    assert not any(v.suppressed for v in result)


@pytest.mark.asyncio
async def test_ancestors_of_a_changed_leaf_reappear(pictures_root, store):
    """Writing a file changes every ancestor's identity, so all of them diverge."""
    before = await build_snapshot(pictures_root, store)
    after = await build_snapshot(
        pictures_root.write(["pictures", "cats", "kitten.png"], "png"), store
    )

    result = diff_snapshots(after, before)

    assert _names(result) == [[["root"]], [["pictures"]], [["cats"]], [["kitten.png"]]]
    assert not any(v.suppressed for v in result)
    kitten = result.levels[3][0][0]
    assert kitten.path == "/pictures/cats/kitten.png"


@pytest.mark.asyncio
async def test_unchanged_entries_under_a_changed_parent_become_references(store):
    root = MemoryDirectory().mkdir(["pictures", "cats"])
    root = root.write(["pictures", "cats", "kitten.png"], "png")
    before = await build_snapshot(root, store)
    after = await build_snapshot(root.mkdir(["pictures", "dogs"]), store)

    result = diff_snapshots(after, before)

    # kitten.png keeps both its identity and its parent's, so it is dropped
    assert _names(result) == [[["root"]], [["pictures"]], [["cats", "dogs"]]]
    cats, dogs = result.levels[2][0]
    assert cats.suppressed
    assert not dogs.suppressed


@pytest.mark.asyncio
async def test_removal_only_reports_changed_ancestors(store):
    root = MemoryDirectory().mkdir(["pictures", "cats"]).mkdir(["music", "rock"])
    root = root.write(["pictures", "cats", "kitten.png"], "png")
    before = await build_snapshot(root, store)
    after = await build_snapshot(root.rm(["pictures", "cats", "kitten.png"]), store)

    result = diff_snapshots(after, before)

    names = [v.name for v in result]
    assert "kitten.png" not in names
    assert names[:3] == ["root", "pictures", "music"]
    assert "rock" not in names  # music was a reference, its child kept its parent


@pytest.mark.asyncio
async def test_moved_vertex_is_suppressed_under_new_parent(store):
    photo = MemoryFile("jpeg")
    p1, p2 = MemoryDirectory(), MemoryDirectory()
    previous_root = MemoryDirectory({
        "p1": MemoryDirectory({"photo.jpg": photo}, created=p1.created),
        "p2": MemoryDirectory({}, created=p2.created),
    })
    current_root = MemoryDirectory({
        "p1": MemoryDirectory({}, created=p1.created),
        "p2": MemoryDirectory({"photo.jpg": photo}, created=p2.created),
    }, created=previous_root.created)

    previous = await build_snapshot(previous_root, store)
    current = await build_snapshot(current_root, store)
    result = diff_snapshots(current, previous)

    matches = [v for v in result if v.identity == photo.identity()]
    assert len(matches) == 1
    moved = matches[0]
    assert moved.suppressed
    assert moved.parent.name == "p2"
    assert moved.parent_identity == current.levels[1][0][1].identity


@pytest.mark.asyncio
async def test_duplicate_identities_match_first_in_traversal_order(store):
    shared = MemoryFile("same")
    p1 = MemoryDirectory({"f": shared})
    p2 = MemoryDirectory({"f": shared})
    previous_root = MemoryDirectory({"p1": p1, "p2": p2})
    current_root = MemoryDirectory({"p1": p1, "p2": p2, "extra": MemoryFile("new")})

    result = diff_snapshots(
        await build_snapshot(current_root, store),
        await build_snapshot(previous_root, store),
    )

    # f under p1 matches itself; f under p2 also matches the p1 copy first
    level2 = [v for group in result.levels[2] for v in group]
    assert [(v.parent.name, v.suppressed) for v in level2] == [("p2", True)]


@pytest.mark.asyncio
async def test_result_keeps_current_root_and_store(pictures_root):
    store = MemoryStore()
    before = await build_snapshot(MemoryDirectory(), store)
    after = await build_snapshot(pictures_root, store)
    result = diff_snapshots(after, before)
    assert result.root_node is pictures_root
    assert result.store is store
    assert result.origin is after


@pytest.mark.asyncio
async def test_result_parents_outlive_current_snapshot(pictures_root, store):
    before = await build_snapshot(MemoryDirectory(), store)
    result = diff_snapshots(await build_snapshot(pictures_root, store), before)
    gc.collect()
    cats = result.levels[2][0][0]
    assert cats.parent is not None
    assert cats.path == "/pictures/cats"


@pytest.mark.asyncio
async def test_result_drops_empty_levels(store):
    root = MemoryDirectory().mkdir(["a", "b", "c"])
    before = await build_snapshot(root, store)
    after = await build_snapshot(root.write(["top.txt"], "x"), store)

    result = diff_snapshots(after, before)

    # only root changed identity; "a" is a reference, b and c are untouched
    assert _names(result) == [[["root"]], [["a", "top.txt"]]]
    assert all(level for level in result.levels)


# ── Consistency checks ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_diff_rejects_malformed_previous(pictures_root, store):
    current = await build_snapshot(pictures_root, store)
    one = Vertex.detached("root", "aaa", True)
    two = Vertex.detached("root", "bbb", True)
    malformed = Snapshot(None, None, [[[one, two]]])

    with pytest.raises(InconsistentSnapshot):
        diff_snapshots(current, malformed)


@pytest.mark.asyncio
async def test_diff_rejects_orphaned_vertex(pictures_root, store):
    current = await build_snapshot(pictures_root, store)
    root = Vertex.detached("root", "aaa", True)
    orphan = Vertex.detached("lost", "bbb", False)
    malformed = Snapshot(None, None, [[[root]], [[orphan]]])

    with pytest.raises(InconsistentSnapshot, match="no parent"):
        diff_snapshots(malformed, current)


def test_diff_rejects_empty_snapshot():
    empty = Snapshot(None, None, [])
    other = Snapshot(None, None, [[[Vertex.detached("root", "aaa", True)]]])
    with pytest.raises(InconsistentSnapshot):
        diff_snapshots(other, empty)


# ── Connections and summary ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_connections_mark_references(store):
    root = MemoryDirectory().mkdir(["pictures", "cats"])
    before = await build_snapshot(root, store)
    after = await build_snapshot(root.mkdir(["pictures", "dogs"]), store)
    result = diff_snapshots(after, before)

    edges = connections(result)
    pictures = result.levels[1][0][0]
    cats, dogs = result.levels[2][0]
    assert edges == [
        Connection(result.root.identity, pictures.identity, False),
        Connection(pictures.identity, cats.identity, True),
        Connection(pictures.identity, dogs.identity, False),
    ]


@pytest.mark.asyncio
async def test_summarize_counts_added_and_moved(store):
    root = MemoryDirectory().mkdir(["pictures", "cats"])
    root = root.write(["pictures", "cats", "kitten.png"], "png")
    before = await build_snapshot(root, store)
    after = await build_snapshot(root.mkdir(["pictures", "dogs"]), store)

    summary = summarize(diff_snapshots(after, before), after, before)

    assert summary.added == ("/", "/pictures", "/pictures/dogs")
    assert summary.moved == ("/pictures/cats",)
    assert summary.unchanged == 1
    assert summary.root_changed
    assert summary.old_root_identity == before.root.identity
    assert summary.new_root_identity == after.root.identity


@pytest.mark.asyncio
async def test_summarize_no_change(pictures_root, store):
    snap = await build_snapshot(pictures_root, store)
    summary = summarize(None, snap, snap)
    assert summary.added == ()
    assert summary.moved == ()
    assert summary.unchanged == 3
    assert not summary.root_changed
