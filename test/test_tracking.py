import datetime
import json
import logging
import os

import py
import pytest

from glu.tracking import (
    BranchLocation,
    FileGraphStorage,
    GraphData,
    GraphParseError,
    InMemoryGraphStorage,
    TrackingGraph,
    parse_graph_data,
)


def test_record_commit_location(graph: TrackingGraph) -> None:
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    graph.record_commit_location("glu_test1_abc123", "review-b", "a" * 40)
    graph.record_commit_location("glu_test2_def456", "review-a", "b" * 40)

    assert graph.get_branches_for_glu_id("glu_test1_abc123") == [
        BranchLocation(branch="review-a", commit_hash="a" * 40),
        BranchLocation(branch="review-b", commit_hash="a" * 40),
    ]
    assert graph.get_glu_ids_on_branch("review-a") == [
        "glu_test1_abc123",
        "glu_test2_def456",
    ]
    assert graph.get_branches_for_glu_id("glu_unknown_000000") == []


def test_record_commit_location_deduplicates(graph: TrackingGraph) -> None:
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    first_seen = graph.get_all_tracked_commits()["glu_test1_abc123"].first_seen

    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    assert len(graph.get_branches_for_glu_id("glu_test1_abc123")) == 1

    # A new hash on the same branch is a new location.
    graph.record_commit_location("glu_test1_abc123", "review-a", "c" * 40)
    assert len(graph.get_branches_for_glu_id("glu_test1_abc123")) == 2
    assert graph.get_all_tracked_commits()["glu_test1_abc123"].first_seen == (
        first_seen
    )


def test_mark_branch_pushed(graph: TrackingGraph) -> None:
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    graph.record_commit_location("glu_test1_abc123", "review-b", "a" * 40)

    graph.mark_branch_pushed(
        "review-a",
        "origin",
        timestamp=datetime.datetime(
            2024, 6, 1, 12, 0, 5, tzinfo=datetime.timezone.utc
        ),
    )
    assert graph.get_branches_for_glu_id("glu_test1_abc123") == [
        BranchLocation(
            branch="review-a",
            commit_hash="a" * 40,
            status="pushed",
            remote="origin",
            pushed_at="2024-06-01T12:00:05.000Z",
        ),
        BranchLocation(branch="review-b", commit_hash="a" * 40),
    ]


def test_prune_deleted_branches(graph: TrackingGraph) -> None:
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    graph.record_commit_location("glu_test1_abc123", "review-b", "a" * 40)
    graph.record_commit_location("glu_test2_def456", "review-b", "b" * 40)

    assert graph.prune_deleted_branches(["main", "review-a"]) == 2
    tracked = graph.get_all_tracked_commits()
    assert list(tracked) == ["glu_test1_abc123"]
    assert [location.branch for location in tracked["glu_test1_abc123"].locations] == [
        "review-a"
    ]

    assert graph.prune_deleted_branches(["main", "review-a"]) == 0


def test_export_import_graph(graph: TrackingGraph) -> None:
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)
    data = graph.export_graph()

    other = TrackingGraph(InMemoryGraphStorage())
    other.import_graph(data)
    assert other.export_graph() == data


def test_parse_graph_data() -> None:
    text = json.dumps(
        {
            "version": "1.0.0",
            "commits": {
                "glu_test1_abc123": {
                    "firstSeen": "2024-06-01T12:00:00.000Z",
                    "locations": [
                        {
                            "branch": "review-a",
                            "commitHash": "a" * 40,
                            "status": "pushed",
                            "remote": "origin",
                            "pushedAt": "2024-06-01T12:00:05.000Z",
                        }
                    ],
                }
            },
        }
    )
    data = parse_graph_data(text)
    assert isinstance(data, GraphData)
    assert data.commits["glu_test1_abc123"].locations[0].remote == "origin"
    assert json.loads(text) == data.to_json()


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        '{"version": "1.0.0"}',
        '{"version": 1, "commits": {}}',
        '{"version": "1.0.0", "commits": {"glu_x": []}}',
        '{"version": "1.0.0", "commits": {"glu_x": {"firstSeen": "t"}}}',
        '{"version": "1.0.0", "commits": {"glu_x": {"firstSeen": "t", '
        '"locations": [{"branch": "b", "commitHash": "h", "status": "lost"}]}}}',
    ],
)
def test_parse_graph_data_invalid(text: str) -> None:
    assert isinstance(parse_graph_data(text), GraphParseError)


def test_file_storage_initializes_missing_file(tmpdir: py.path.local) -> None:
    path = str(tmpdir.join("glu", "graph.json"))
    storage = FileGraphStorage(path)
    assert not storage.exists()

    assert storage.load() == GraphData()
    assert storage.exists()
    with open(path) as f:
        assert json.load(f) == {"version": "1.0.0", "commits": {}}


def test_file_storage_round_trip(tmpdir: py.path.local) -> None:
    path = str(tmpdir.join("glu", "graph.json"))
    graph = TrackingGraph(FileGraphStorage(path))
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)

    reloaded = TrackingGraph(FileGraphStorage(path))
    assert reloaded.get_glu_ids_on_branch("review-a") == ["glu_test1_abc123"]
    with open(path) as f:
        data = json.load(f)
    location = data["commits"]["glu_test1_abc123"]["locations"][0]
    assert location == {
        "branch": "review-a",
        "commitHash": "a" * 40,
        "status": "unpushed",
    }


def test_file_storage_backs_up_corrupt_file(
    tmpdir: py.path.local, caplog: pytest.LogCaptureFixture
) -> None:
    path = str(tmpdir.join("graph.json"))
    with open(path, "w") as f:
        f.write("{corrupt")

    storage = FileGraphStorage(path)
    with caplog.at_level(logging.WARNING):
        assert storage.load() == GraphData()
    assert "is corrupt" in caplog.text

    backups = [
        name
        for name in os.listdir(str(tmpdir))
        if name.startswith("graph.json.backup.")
    ]
    assert len(backups) == 1
    with open(os.path.join(str(tmpdir), backups[0])) as f:
        assert f.read() == "{corrupt"
    with open(path) as f:
        assert json.load(f) == {"version": "1.0.0", "commits": {}}


def test_in_memory_storage_keeps_copies() -> None:
    storage = InMemoryGraphStorage()
    graph = TrackingGraph(storage)
    graph.record_commit_location("glu_test1_abc123", "review-a", "a" * 40)

    loaded = storage.load()
    loaded.commits.clear()
    assert list(storage.load().commits) == ["glu_test1_abc123"]
    assert storage.load() == storage.load()
    assert storage.load() is not storage.load()
