"""Give every commit of the patch stack a glu ID.

Commits are immutable, so adding a trailer to a commit message means
rewriting that commit and every commit after it. The rewrite happens on a
disposable staging branch:

  1. The staging branch is created at the parent of the oldest commit.
  2. Each commit is cherry-picked onto it, oldest first. Commits without a
     glu ID get one by amending the commit message.
  3. The original branch is moved to the staging branch's tip with a single
     `git update-ref`.
  4. The original branch is checked out again and the staging branch is
     deleted.

Until step 3, the original branch is never touched, so any failure leaves
the user's history exactly as it was. Step 3 is atomic: `git update-ref` is
given the expected old value of the branch, and refuses to move it if
anything else moved it in the meantime.

Cherry-picks are done with `--ff`, so commits before the first one that
needs an ID are reused as they are, and keep their hashes. Empty commits
are carried over as empty commits.
"""
import logging
import subprocess
from dataclasses import dataclass
from typing import Sequence

import pygit2

from . import OidStr, get_current_branch_name, get_head_oid, run_git_silent
from .cherry_pick import abort_cherry_pick
from .commits import Commit
from .errors import DetachedHeadError, RangeInvalidError
from .identity import add_glu_id_to_message, has_glu_id

STAGING_BRANCH_PREFIX = "glu/staging/"

STAGING_BRANCH = f"{STAGING_BRANCH_PREFIX}add-glu-ids"


@dataclass(frozen=True)
class InjectionResult:
    commits_processed: int
    """The number of commits that were checked for a glu ID."""

    commits_modified: int
    """The number of commits that were given a new glu ID.

    If non-zero, the hashes of those commits and of every commit after the
    first of them have changed, so any `Commit` objects read before the
    rewrite are stale.
    """


def ensure_commits_have_glu_ids(
    repo: pygit2.Repository, git_executable: str, commits: Sequence[Commit]
) -> InjectionResult:
    """Make sure that each of the given commits has a glu ID.

    If they all do already, nothing is rewritten.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      commits: Commits of the current branch, oldest first, ending at `HEAD`
        and with no gaps between them.

    Returns:
      How many commits were processed and how many were rewritten.
    """
    if not commits:
        return InjectionResult(commits_processed=0, commits_modified=0)

    commits_needing_glu_ids = [
        commit for commit in commits if not has_glu_id(commit.body)
    ]
    if not commits_needing_glu_ids:
        return InjectionResult(commits_processed=len(commits), commits_modified=0)

    inject_glu_ids(repo=repo, git_executable=git_executable, commits=commits)
    return InjectionResult(
        commits_processed=len(commits),
        commits_modified=len(commits_needing_glu_ids),
    )


def _get_rebuild_base(repo: pygit2.Repository, commit: Commit) -> OidStr:
    parent_ids = repo[commit.hash].parent_ids
    if not parent_ids:
        raise RangeInvalidError(
            commit.hash,
            f"Commit {commit.hash:8.8} is the root commit and can't be rewritten.",
        )
    return str(parent_ids[0])


def _cleanup_after_failure(
    repo: pygit2.Repository, git_executable: str, branch_name: str
) -> None:
    try:
        abort_cherry_pick(repo, git_executable)
    except subprocess.CalledProcessError as e:
        logging.warning(f"Failed to abort cherry-pick: {e.stderr}")

    for args in [["checkout", branch_name], ["branch", "-D", STAGING_BRANCH]]:
        try:
            run_git_silent(repo, git_executable, args)
        except subprocess.CalledProcessError as e:
            logging.warning(f"Cleanup step failed: {e.cmd}: {e.stderr}")


def inject_glu_ids(
    repo: pygit2.Repository, git_executable: str, commits: Sequence[Commit]
) -> None:
    """Rewrite the given commits so that each of them has a glu ID.

    Commits which already have a glu ID keep it; it's never replaced.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      commits: Commits of the current branch, oldest first, ending at `HEAD`
        and with no gaps between them. Must not include the root commit.

    Raises:
      DetachedHeadError: if no branch is checked out.
      RangeInvalidError: if the oldest commit is the root commit.
      subprocess.CalledProcessError: if a Git command failed. The original
        branch is checked out again, and the staging branch is deleted.
    """
    branch_name = get_current_branch_name(repo)
    if branch_name is None:
        raise DetachedHeadError()
    base_oid = _get_rebuild_base(repo, commits[0])
    original_tip = get_head_oid(repo)

    # `-B` resets a staging branch left behind by an interrupted run.
    run_git_silent(
        repo, git_executable, ["checkout", "-B", STAGING_BRANCH, base_oid]
    )
    try:
        for commit in commits:
            run_git_silent(
                repo,
                git_executable,
                ["cherry-pick", "--ff", "--allow-empty", commit.hash],
            )
            if not has_glu_id(commit.body):
                logging.debug(f"Adding glu ID to {commit.hash}: {commit.subject}")
                run_git_silent(
                    repo,
                    git_executable,
                    [
                        "commit",
                        "--amend",
                        "--allow-empty",
                        "-m",
                        add_glu_id_to_message(commit.body),
                    ],
                )

        new_tip = get_head_oid(repo)
        run_git_silent(
            repo,
            git_executable,
            [
                "update-ref",
                "-m",
                "glu: add glu IDs",
                f"refs/heads/{branch_name}",
                new_tip,
                original_tip,
            ],
        )

        run_git_silent(repo, git_executable, ["checkout", branch_name])
        run_git_silent(repo, git_executable, ["branch", "-D", STAGING_BRANCH])
    except Exception:
        _cleanup_after_failure(
            repo=repo, git_executable=git_executable, branch_name=branch_name
        )
        raise
