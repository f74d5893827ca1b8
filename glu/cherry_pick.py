"""Apply commits from the patch stack onto other branches.

Commits are applied strictly in the order given, one `git cherry-pick` at a
time, so that a failure can be attributed to a single commit. Conflicts are
never resolved automatically: the cherry-pick is aborted and the conflict is
reported to the caller.
"""
import logging
import subprocess
from typing import Callable, List, Optional, Sequence

import pygit2
from pygit2.enums import RepositoryState

from . import get_current_branch_name, run_git_silent
from .commits import Commit, IndexedCommit
from .errors import CherryPickConflictError, CherryPickFailedError, RangeInvalidError

CherryPickCallback = Callable[[int, int, Commit], None]
"""Called before each commit is applied, with its 1-based position in the
list, the total number of commits, and the commit itself."""


def ensure_on_branch(
    repo: pygit2.Repository, git_executable: str, target_branch: str
) -> None:
    """Check out the given branch, unless it's already checked out.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      target_branch: The branch to check out.
    """
    if get_current_branch_name(repo) != target_branch:
        run_git_silent(repo, git_executable, ["checkout", target_branch])


def get_conflict_files(repo: pygit2.Repository, git_executable: str) -> List[str]:
    """Get the paths which currently have unmerged changes.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.

    Returns:
      The conflicting paths, relative to the root of the working copy.
    """
    output = run_git_silent(
        repo, git_executable, ["diff", "--name-only", "--diff-filter=U"]
    )
    return [line for line in output.splitlines() if line]


def is_cherry_pick_in_progress(repo: pygit2.Repository) -> bool:
    return repo.state() in (
        RepositoryState.CHERRYPICK,
        RepositoryState.CHERRYPICK_SEQUENCE,
    )


def abort_cherry_pick(repo: pygit2.Repository, git_executable: str) -> None:
    """Abort the cherry-pick in progress, if any.

    Calling this when no cherry-pick is in progress does nothing.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
    """
    if not is_cherry_pick_in_progress(repo):
        return
    run_git_silent(repo, git_executable, ["cherry-pick", "--abort"])


def _raise_cherry_pick_error(
    repo: pygit2.Repository,
    git_executable: str,
    error: subprocess.CalledProcessError,
    commit: Commit,
    position: int,
    total: int,
) -> None:
    conflict_files = get_conflict_files(repo, git_executable)
    if conflict_files:
        abort_cherry_pick(repo, git_executable)
        raise CherryPickConflictError(
            commit=commit,
            commit_index=position + 1,
            total_commits=total,
            applied_count=position,
            conflict_files=conflict_files,
        ) from error

    raise CherryPickFailedError(
        commit=commit,
        commit_index=position + 1,
        original_error=error.stderr or str(error),
    ) from error


def cherry_pick_commits(
    repo: pygit2.Repository,
    git_executable: str,
    commits: Sequence[Commit],
    target_branch: str,
    on_commit: Optional[CherryPickCallback] = None,
) -> None:
    """Apply the given commits onto a branch, in order.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      commits: The commits to apply, oldest first.
      target_branch: The branch to apply the commits onto. It's checked out
        if it isn't already, and stays checked out afterwards.
      on_commit: Called before each commit is applied.

    Raises:
      RangeInvalidError: if there are no commits to apply.
      CherryPickConflictError: if a commit didn't apply cleanly. The
        cherry-pick has been aborted, so the branch holds only the commits
        applied before it.
      CherryPickFailedError: if a commit couldn't be applied for any other
        reason.
    """
    if not commits:
        raise RangeInvalidError(target_branch, "No commits to cherry-pick.")

    ensure_on_branch(repo, git_executable, target_branch)
    total = len(commits)
    for (position, commit) in enumerate(commits):
        if on_commit is not None:
            on_commit(position + 1, total, commit)
        try:
            run_git_silent(
                repo, git_executable, ["cherry-pick", "--allow-empty", commit.hash]
            )
        except subprocess.CalledProcessError as e:
            _raise_cherry_pick_error(
                repo=repo,
                git_executable=git_executable,
                error=e,
                commit=commit,
                position=position,
                total=total,
            )


def stage_commits(
    repo: pygit2.Repository,
    git_executable: str,
    commits: Sequence[Commit],
    staging_branch: str,
    on_commit: Optional[CherryPickCallback] = None,
) -> None:
    """Apply commits onto a staging branch, then return to the current branch.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      commits: The commits to apply, oldest first.
      staging_branch: The branch to apply the commits onto.
      on_commit: Called before each commit is applied.

    Raises:
      CherryPickConflictError: see `cherry_pick_commits`.
      CherryPickFailedError: see `cherry_pick_commits`.
    """
    original_branch = get_current_branch_name(repo)
    try:
        cherry_pick_commits(
            repo=repo,
            git_executable=git_executable,
            commits=commits,
            target_branch=staging_branch,
            on_commit=on_commit,
        )
    except Exception:
        # Aborting resets to the pre-pick state of whatever is checked out,
        # so it has to happen before we leave the staging branch.
        try:
            abort_cherry_pick(repo, git_executable)
            if original_branch is not None:
                ensure_on_branch(repo, git_executable, original_branch)
        except subprocess.CalledProcessError as e:
            logging.warning(
                f"Failed to return to branch {original_branch}: {e.stderr}"
            )
        raise

    if original_branch is not None:
        ensure_on_branch(repo, git_executable, original_branch)


def is_commits_contiguous(commits: Sequence[IndexedCommit]) -> bool:
    """Determine whether the commits form an unbroken run of the patch stack.

    Args:
      commits: The commits, in the order they'd be applied.

    Returns:
      Whether each commit's index is exactly one more than the previous
      commit's. An empty list is not contiguous.
    """
    if not commits:
        return False
    return all(
        current.index == previous.index + 1
        for (previous, current) in zip(commits, commits[1:])
    )
