"""Read the patch stack.

The patch stack is the list of commits on the current branch which are not
on its upstream branch, oldest first. Commits are numbered from 1, and those
numbers are how the user selects commits on the command-line.
"""
import re
from dataclasses import dataclass
from typing import Any, List, Tuple, Type, TypeVar

import pygit2
from pygit2.enums import FileStatus, SortMode

from . import OidStr, get_current_branch_name
from .errors import (
    BranchNotFoundError,
    DetachedHeadError,
    RangeInvalidError,
    UpstreamMissingError,
    WorkingTreeDirtyError,
)


_T = TypeVar("_T", bound="Commit")


@dataclass(frozen=True)
class Commit:
    """A snapshot of a commit, as read from the repository."""

    hash: OidStr
    """The full hex object ID of the commit."""

    subject: str
    """The first line of the commit message."""

    body: str
    """The full commit message, including the subject line."""

    @classmethod
    def from_pygit2(cls: Type[_T], commit: pygit2.Commit, **kwargs: Any) -> _T:
        message = commit.message
        return cls(
            hash=str(commit.id),
            subject=message.split("\n", 1)[0],
            body=message,
            **kwargs,
        )


@dataclass(frozen=True)
class IndexedCommit(Commit):
    """A commit of the patch stack, along with its position in it."""

    index: int
    """1-based position in the patch stack, oldest first."""


RANGE_RE = re.compile(
    r"""
^
(?P<start>\d+)
(
    -
    (?P<end>\d+)
)?
$
""",
    re.VERBOSE,
)


def get_upstream_branch(
    repo: pygit2.Repository, branch_name: str
) -> pygit2.Branch:
    """Get the upstream branch of a local branch.

    Args:
      repo: The Git repository.
      branch_name: The short name of the local branch.

    Raises:
      BranchNotFoundError: if there is no such local branch.
      UpstreamMissingError: if no upstream is configured, or it doesn't
        resolve to a commit.

    Returns:
      The upstream branch.
    """
    branch = repo.lookup_branch(branch_name)
    if branch is None:
        raise BranchNotFoundError(branch_name)
    upstream = branch.upstream
    if upstream is None:
        raise UpstreamMissingError(branch_name)
    return upstream


def get_unpushed_commits(repo: pygit2.Repository) -> List[IndexedCommit]:
    """Get the patch stack of the current branch.

    Args:
      repo: The Git repository.

    Raises:
      DetachedHeadError: if no branch is checked out.
      UpstreamMissingError: if the current branch has no upstream.

    Returns:
      The commits reachable from `HEAD` but not from the upstream branch,
      oldest first, numbered from 1.
    """
    branch_name = get_current_branch_name(repo)
    if branch_name is None:
        raise DetachedHeadError()
    upstream = get_upstream_branch(repo, branch_name)

    walker = repo.walk(repo.head.target, SortMode.TOPOLOGICAL | SortMode.REVERSE)
    walker.hide(upstream.target)
    return [
        IndexedCommit.from_pygit2(commit, index=index)
        for index, commit in enumerate(walker, start=1)
    ]


def get_ahead_behind(repo: pygit2.Repository) -> Tuple[str, int, int]:
    """Compare the current branch with its upstream.

    Args:
      repo: The Git repository.

    Raises:
      DetachedHeadError: if no branch is checked out.
      UpstreamMissingError: if the current branch has no upstream.

    Returns:
      A tuple of the upstream branch name, the number of commits the current
      branch is ahead of it, and the number of commits it is behind.
    """
    branch_name = get_current_branch_name(repo)
    if branch_name is None:
        raise DetachedHeadError()
    upstream = get_upstream_branch(repo, branch_name)
    (ahead, behind) = repo.ahead_behind(repo.head.target, upstream.target)
    return (upstream.shorthand, ahead, behind)


def parse_range(range_spec: str) -> Tuple[int, int]:
    """Parse a commit range from the command-line.

    Args:
      range_spec: A range such as `"2"` or `"1-3"`. Positions are 1-based and
        inclusive.

    Raises:
      RangeInvalidError: if the range is malformed.

    Returns:
      The 0-based, inclusive start and end indexes.
    """
    match = RANGE_RE.match(range_spec.strip())
    if match is None:
        raise RangeInvalidError(
            range_spec,
            'Invalid range format. Use "n" or "n-m" where n and m are numbers.',
        )

    start = int(match.group("start"))
    end_str = match.group("end")
    end = start if end_str is None else int(end_str)
    if start < 1:
        raise RangeInvalidError(range_spec, "Indices must start from 1.")
    if start > end:
        raise RangeInvalidError(
            range_spec, "Start index must be less than or equal to end index."
        )
    return (start - 1, end - 1)


def get_commits_in_range(
    repo: pygit2.Repository, range_spec: str
) -> List[IndexedCommit]:
    """Select a range of the patch stack.

    Args:
      repo: The Git repository.
      range_spec: The range to select, such as `"1-3"`.

    Raises:
      RangeInvalidError: if the range is malformed or out of bounds.
      DetachedHeadError: if no branch is checked out.
      UpstreamMissingError: if the current branch has no upstream.

    Returns:
      The selected commits, oldest first.
    """
    (start_index, end_index) = parse_range(range_spec)
    commits = get_unpushed_commits(repo)
    if not commits:
        raise RangeInvalidError(range_spec, "No unpushed commits available.")
    if start_index >= len(commits):
        raise RangeInvalidError(
            range_spec,
            f"Start index {start_index + 1} is out of range (1-{len(commits)}).",
            available_commits=len(commits),
        )
    if end_index >= len(commits):
        raise RangeInvalidError(
            range_spec,
            f"End index {end_index + 1} is out of range (1-{len(commits)}).",
            available_commits=len(commits),
        )
    return commits[start_index : end_index + 1]


def require_clean_working_tree(repo: pygit2.Repository) -> None:
    """Ensure there are no uncommitted changes.

    Args:
      repo: The Git repository.

    Raises:
      WorkingTreeDirtyError: if there are staged, modified or untracked
        files.
    """
    modified = []
    staged = []
    untracked = []
    for (path, flags) in sorted(repo.status().items()):
        if flags & FileStatus.IGNORED:
            continue
        if flags & (
            FileStatus.INDEX_NEW
            | FileStatus.INDEX_MODIFIED
            | FileStatus.INDEX_DELETED
            | FileStatus.INDEX_RENAMED
            | FileStatus.INDEX_TYPECHANGE
        ):
            staged.append(path)
        if flags & (
            FileStatus.WT_MODIFIED
            | FileStatus.WT_DELETED
            | FileStatus.WT_RENAMED
            | FileStatus.WT_TYPECHANGE
            | FileStatus.CONFLICTED
        ):
            modified.append(path)
        if flags & FileStatus.WT_NEW:
            untracked.append(path)

    if modified or staged or untracked:
        raise WorkingTreeDirtyError(
            modified=modified, staged=staged, untracked=untracked
        )
