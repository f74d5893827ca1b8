"""Track where each glu ID has been published.

The tracking graph records, for each glu ID, every branch and commit hash
that the corresponding logical commit was copied to. It's stored as a single
JSON document under the Git directory:

    {
      "version": "1.0.0",
      "commits": {
        "glu_lx2k9f1c_4f2a9c01be77": {
          "firstSeen": "2024-06-01T12:00:00.000Z",
          "locations": [
            {
              "branch": "add-feature-b",
              "commitHash": "6f0b7a...",
              "status": "pushed",
              "remote": "origin",
              "pushedAt": "2024-06-01T12:00:05.000Z"
            }
          ]
        }
      }
    }

The document is always read and written as a whole. There's no locking, so
two concurrent invocations race, and the last one to save wins. The graph is
only a cache of what the user did locally, so a corrupt file is backed up and
replaced by an empty graph rather than reported as an error.
"""
import copy
import datetime
import json
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

import pygit2
from typing_extensions import Literal, Protocol

GRAPH_VERSION = "1.0.0"

LocationStatus = Literal["unpushed", "pushed"]


def _now_iso(timestamp: Optional[datetime.datetime] = None) -> str:
    if timestamp is None:
        timestamp = datetime.datetime.now(datetime.timezone.utc)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
    timestamp = timestamp.astimezone(datetime.timezone.utc)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class BranchLocation:
    branch: str
    commit_hash: str
    status: LocationStatus = "unpushed"
    remote: Optional[str] = None
    pushed_at: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "branch": self.branch,
            "commitHash": self.commit_hash,
            "status": self.status,
        }
        if self.remote is not None:
            result["remote"] = self.remote
        if self.pushed_at is not None:
            result["pushedAt"] = self.pushed_at
        return result


@dataclass
class CommitTracking:
    first_seen: str
    locations: List[BranchLocation] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "firstSeen": self.first_seen,
            "locations": [location.to_json() for location in self.locations],
        }


@dataclass
class GraphData:
    version: str = GRAPH_VERSION
    commits: Dict[str, CommitTracking] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "commits": {
                glu_id: tracking.to_json() for glu_id, tracking in self.commits.items()
            },
        }


@dataclass(frozen=True)
class GraphParseError:
    """The persisted graph couldn't be used."""

    reason: str


def _parse_location(data: Any) -> Union[BranchLocation, GraphParseError]:
    if not isinstance(data, dict):
        return GraphParseError("location is not an object")
    branch = data.get("branch")
    commit_hash = data.get("commitHash")
    status = data.get("status")
    remote = data.get("remote")
    pushed_at = data.get("pushedAt")
    if not isinstance(branch, str) or not isinstance(commit_hash, str):
        return GraphParseError("location is missing its branch or commit hash")
    if status not in ("unpushed", "pushed"):
        return GraphParseError(f"unknown location status: {status!r}")
    if remote is not None and not isinstance(remote, str):
        return GraphParseError("location remote is not a string")
    if pushed_at is not None and not isinstance(pushed_at, str):
        return GraphParseError("location push time is not a string")
    return BranchLocation(
        branch=branch,
        commit_hash=commit_hash,
        status=status,
        remote=remote,
        pushed_at=pushed_at,
    )


def parse_graph_data(text: str) -> Union[GraphData, GraphParseError]:
    """Parse and validate the persisted tracking graph.

    Args:
      text: The contents of the graph file.

    Returns:
      The graph, or a `GraphParseError` describing why it couldn't be used.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        return GraphParseError(f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return GraphParseError("graph is not an object")
    version = data.get("version")
    commits = data.get("commits")
    if not isinstance(version, str):
        return GraphParseError("graph version is not a string")
    if not isinstance(commits, dict):
        return GraphParseError("graph commits is not an object")

    graph = GraphData(version=version)
    for (glu_id, tracking) in commits.items():
        if not isinstance(tracking, dict):
            return GraphParseError(f"entry for {glu_id} is not an object")
        first_seen = tracking.get("firstSeen")
        locations = tracking.get("locations")
        if not isinstance(first_seen, str) or not isinstance(locations, list):
            return GraphParseError(f"entry for {glu_id} is malformed")

        entry = CommitTracking(first_seen=first_seen)
        for location_data in locations:
            location = _parse_location(location_data)
            if isinstance(location, GraphParseError):
                return location
            entry.locations.append(location)
        graph.commits[glu_id] = entry
    return graph


class GraphStorage(Protocol):
    """Interface for loading and saving the tracking graph."""

    def load(self) -> GraphData:  # pragma: no cover
        """Load the graph. Never raises; an unusable graph is reset."""
        ...

    def save(self, data: GraphData) -> None:  # pragma: no cover
        """Replace the stored graph with `data`."""
        ...


class FileGraphStorage:
    """Stores the tracking graph as a JSON file."""

    def __init__(self, path: str) -> None:
        """Constructor.

        Args:
          path: The path to the JSON file. Its directory is created when the
            graph is first saved.
        """
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def initialize(self) -> GraphData:
        data = GraphData()
        self.save(data)
        return data

    def load(self) -> GraphData:
        if not self.exists():
            return self.initialize()

        result: Union[GraphData, GraphParseError]
        try:
            with open(self.path, encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            result = GraphParseError(f"unreadable: {e}")
        else:
            result = parse_graph_data(text)
        if isinstance(result, GraphParseError):
            backup_path = self._create_backup()
            logging.warning(
                f"Tracking graph {self.path} is corrupt ({result.reason}); "
                f"backed up to {backup_path} and reset"
            )
            return self.initialize()
        return result

    def save(self, data: GraphData) -> None:
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data.to_json(), f, indent=2)
            f.write("\n")

    def _create_backup(self) -> Optional[str]:
        backup_path = f"{self.path}.backup.{int(time.time() * 1000)}"
        try:
            shutil.copyfile(self.path, backup_path)
        except OSError as e:
            logging.warning(f"Failed to back up {self.path}: {e}")
            return None
        return backup_path


class InMemoryGraphStorage:
    """Keeps the tracking graph in memory, e.g. for dry runs and testing."""

    def __init__(self, data: Optional[GraphData] = None) -> None:
        self._data = GraphData() if data is None else copy.deepcopy(data)

    def load(self) -> GraphData:
        return copy.deepcopy(self._data)

    def save(self, data: GraphData) -> None:
        self._data = copy.deepcopy(data)


def make_graph_storage_for_repo(repo: pygit2.Repository) -> FileGraphStorage:
    """Get the storage for the tracking graph of the repo.

    One graph is associated with each Git repo. It lives in the Git
    directory, so it's never committed.

    Returns:
      The storage for this Git repo.
    """
    return FileGraphStorage(os.path.join(repo.path, "glu", "graph.json"))


class TrackingGraph:
    """Queries and updates on the tracking graph."""

    def __init__(self, storage: GraphStorage) -> None:
        self._storage = storage

    def record_commit_location(
        self, glu_id: str, branch: str, commit_hash: str
    ) -> None:
        """Record that the commit with the given glu ID is on a branch.

        Nothing is recorded if the same branch and commit hash are already
        known for this glu ID. A different hash on the same branch is recorded
        as a new location.

        Args:
          glu_id: The glu ID of the commit.
          branch: The branch the commit is on.
          commit_hash: The hash of the commit.
        """
        data = self._storage.load()
        tracking = data.commits.get(glu_id)
        if tracking is None:
            tracking = CommitTracking(first_seen=_now_iso())
            data.commits[glu_id] = tracking

        if not any(
            location.branch == branch and location.commit_hash == commit_hash
            for location in tracking.locations
        ):
            tracking.locations.append(
                BranchLocation(branch=branch, commit_hash=commit_hash)
            )
        self._storage.save(data)

    def mark_branch_pushed(
        self,
        branch: str,
        remote: str,
        timestamp: Optional[datetime.datetime] = None,
    ) -> None:
        """Mark every location on a branch as pushed.

        Args:
          branch: The branch which was pushed.
          remote: The remote it was pushed to.
          timestamp: When it was pushed. Defaults to now.
        """
        data = self._storage.load()
        pushed_at = _now_iso(timestamp)
        for tracking in data.commits.values():
            for location in tracking.locations:
                if location.branch == branch:
                    location.status = "pushed"
                    location.remote = remote
                    location.pushed_at = pushed_at
        self._storage.save(data)

    def get_branches_for_glu_id(self, glu_id: str) -> List[BranchLocation]:
        data = self._storage.load()
        tracking = data.commits.get(glu_id)
        if tracking is None:
            return []
        return tracking.locations

    def get_glu_ids_on_branch(self, branch: str) -> List[str]:
        data = self._storage.load()
        return [
            glu_id
            for glu_id, tracking in data.commits.items()
            if any(location.branch == branch for location in tracking.locations)
        ]

    def get_all_tracked_commits(self) -> Dict[str, CommitTracking]:
        return self._storage.load().commits

    def prune_deleted_branches(self, existing_branches: Iterable[str]) -> int:
        """Forget locations on branches which no longer exist.

        Args:
          existing_branches: The names of all branches which currently exist.
            Any location on a branch not in this list is removed.

        Returns:
          The number of locations removed.
        """
        data = self._storage.load()
        branch_set = set(existing_branches)
        prune_count = 0
        for glu_id in list(data.commits):
            tracking = data.commits[glu_id]
            kept = [
                location
                for location in tracking.locations
                if location.branch in branch_set
            ]
            prune_count += len(tracking.locations) - len(kept)
            tracking.locations = kept
            if not kept:
                del data.commits[glu_id]
        self._storage.save(data)
        return prune_count

    def export_graph(self) -> GraphData:
        return self._storage.load()

    def import_graph(self, data: GraphData) -> None:
        self._storage.save(data)
