"""Patch-stack review workflow for Git.

# Why?

Many developers keep a stack of small, unmerged commits on a single branch.
Each of those commits is meant to be reviewed on its own, but code review
tools want one branch per review. Cutting branches by hand means
cherry-picking, naming, and pushing every subset, and afterwards there's no
way to tell which review branch carries which commit once you amend or
rebase the stack.

# Concepts

  * **Patch stack**: the commits on the current branch which are not on its
    upstream branch. They're numbered from 1 (oldest) upwards.
  * **Glu ID**: a persistent identity stored in a `Glu-ID:` trailer of the
    commit message. It survives amends, rebases and cherry-picks, so the same
    logical commit can be recognized on every branch it was copied to.
  * **Review branch**: a branch holding a range of the patch stack, applied on
    top of the upstream branch.
  * **Tracking graph**: a file under the Git directory which records, for each
    glu ID, every branch and commit hash it was published as.
"""
import os
import subprocess
from typing import List, Optional, Set

import pygit2

OidStr = str
"""Represents an object ID in the Git repository, as a hex string.

We don't use `pygit2.Oid` directly since commits are frequently rewritten
underneath us by `git` subprocesses, and the hex string is what gets stored in
the tracking graph anyways.
"""


def get_repo() -> pygit2.Repository:
    """Get the git repository associated with the current directory.

    Returns:
      The repository object associated with the current directory.

    Raises:
      RuntimeError: If the repository could not be found.
    """
    repo_path = pygit2.discover_repository(os.getcwd())
    if repo_path is None:
        raise RuntimeError("Failed to discover repository")
    return pygit2.Repository(repo_path)


def run_git_silent(
    repo: pygit2.Repository, git_executable: str, args: List[str]
) -> str:
    """Run Git silently (don't display output to the user).

    Reads go through `pygit2` whenever possible. Anything which touches the
    working copy, the index or refs that the user has checked out is run
    through this function instead, so that Git's own locking and hooks apply.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      args: The command-line args to pass to Git. The `git` executable will
        be prepended to this list automatically.

    Raises:
      subprocess.CalledProcessError: if the command failed. The `stderr`
        attribute holds the decoded error output.

    Result:
      The output from the command.
    """
    result = subprocess.run(
        [git_executable, "-C", get_working_dir(repo), *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
        check=True,
    )
    return result.stdout


def get_working_dir(repo: pygit2.Repository) -> str:
    """Get the directory that `git` subprocesses should run in.

    Args:
      repo: The Git repository.

    Returns:
      The working directory, or the Git directory for a bare repository.
    """
    if repo.workdir is not None:
        return repo.workdir
    return repo.path


def get_current_branch_name(repo: pygit2.Repository) -> Optional[str]:
    """Get the name of the currently checked-out branch.

    Args:
      repo: The Git repository.

    Returns:
      The short name of the branch, or `None` if `HEAD` is detached (or
      unborn).
    """
    if repo.head_is_detached or repo.head_is_unborn:
        return None
    return repo.head.shorthand


def get_branch_names(repo: pygit2.Repository) -> Set[str]:
    """Get the branch names for the repository.

    This only includes local branches; review branches are always created
    locally, so remote branches can't hold a tracked location.

    Args:
      repo: The Git repository.

    Returns:
      The set of branch names for the repository.
    """
    return set(repo.branches.local)


def branch_exists(repo: pygit2.Repository, branch_name: str) -> bool:
    """Determine whether a local branch exists.

    Args:
      repo: The Git repository.
      branch_name: The short name of the branch.

    Returns:
      Whether or not the branch exists.
    """
    return repo.lookup_branch(branch_name) is not None


def get_head_oid(repo: pygit2.Repository) -> OidStr:
    """Get the OID of the commit that `HEAD` resolves to.

    Args:
      repo: The Git repository.

    Returns:
      The OID of the `HEAD` commit.
    """
    return str(repo.head.target)
