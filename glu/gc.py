"""Clean up after interrupted runs.

Rewriting the patch stack and creating review branches both work on
temporary branches under `glu/staging/`. They're deleted when the operation
finishes or fails, but if the process is killed in between they're left
behind. The tracking graph can also refer to review branches which the user
has since deleted.

This module deletes such branches and forgets about such review branches.
"""
import logging
import subprocess
from dataclasses import dataclass
from typing import List, TextIO

import pygit2

from . import get_branch_names, get_current_branch_name, get_repo, run_git_silent
from .formatting import make_glyphs, pluralize
from .rewrite import STAGING_BRANCH_PREFIX
from .tracking import TrackingGraph, make_graph_storage_for_repo


def find_orphaned_branches(repo: pygit2.Repository) -> List[str]:
    """Find temporary branches left behind by an interrupted run.

    Args:
      repo: The Git repository.

    Returns:
      The names of the branches, sorted.
    """
    return sorted(
        branch_name
        for branch_name in get_branch_names(repo)
        if branch_name.startswith(STAGING_BRANCH_PREFIX)
    )


@dataclass(frozen=True)
class GcResult:
    deleted_branches: List[str]
    num_pruned_locations: int


def collect_garbage(
    repo: pygit2.Repository, git_executable: str, graph: TrackingGraph
) -> GcResult:
    """Delete orphaned temporary branches and prune the tracking graph.

    The currently checked-out branch is never deleted, even if it looks like
    a temporary branch.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      graph: The tracking graph to prune.

    Returns:
      The branches that were deleted, and the number of tracked locations
      that were forgotten.
    """
    current_branch = get_current_branch_name(repo)
    deleted_branches = []
    for branch_name in find_orphaned_branches(repo):
        if branch_name == current_branch:
            logging.warning(f"Not deleting {branch_name}, since it's checked out")
            continue
        try:
            run_git_silent(repo, git_executable, ["branch", "-D", branch_name])
        except subprocess.CalledProcessError as e:
            logging.warning(f"Failed to delete branch {branch_name}: {e.stderr}")
            continue
        deleted_branches.append(branch_name)

    num_pruned_locations = graph.prune_deleted_branches(get_branch_names(repo))
    return GcResult(
        deleted_branches=deleted_branches,
        num_pruned_locations=num_pruned_locations,
    )


def gc(*, out: TextIO, git_executable: str) -> int:
    """Delete leftover temporary branches and forget deleted review branches.

    Args:
      out: The output stream to write to.
      git_executable: The path to the `git` executable on disk.

    Returns:
      Exit code (0 denotes successful exit).
    """
    glyphs = make_glyphs(out)
    repo = get_repo()
    graph = TrackingGraph(make_graph_storage_for_repo(repo))
    result = collect_garbage(repo=repo, git_executable=git_executable, graph=graph)

    for branch_name in result.deleted_branches:
        out.write(f"{glyphs.bullet_point} Deleted branch {branch_name}\n")
    num_branches = pluralize(len(result.deleted_branches), "branch", "branches")
    num_locations = pluralize(
        result.num_pruned_locations, "tracked location", "tracked locations"
    )
    out.write(f"glu: deleted {num_branches}, pruned {num_locations}\n")
    return 0
