"""List the patch stack.

Shows how the current branch compares to its upstream branch, then each
commit of the patch stack, newest first, numbered the way `glu review`
expects its range:

    feature -> origin/main [+3 -0]

      3  9fceb02  Add logout button  (add-logout-button)
      2  1a410ef  Add login page
      1  c1b8a3e  Extract session helpers  (extract-session-helpers)
"""
from dataclasses import dataclass
from typing import List, TextIO

import colorama
import pygit2

from . import get_branch_names, get_current_branch_name, get_repo
from .commits import IndexedCommit, get_ahead_behind, get_unpushed_commits
from .config import load_config
from .errors import DetachedHeadError, GluError
from .formatting import Glyphs, make_glyphs, render_error
from .metadata import (
    CommitHashProvider,
    CommitIndexProvider,
    CommitMetadataProvider,
    CommitSubjectProvider,
    TrackedBranchesProvider,
    render_commit_metadata,
)
from .tracking import TrackingGraph, make_graph_storage_for_repo


@dataclass(frozen=True)
class ListResult:
    current_branch: str
    upstream_branch: str
    ahead: int
    behind: int
    unpushed_commits: List[IndexedCommit]
    """The patch stack, oldest first."""


def list_commits(repo: pygit2.Repository, graph: TrackingGraph) -> ListResult:
    """Get the patch stack of the current branch.

    Tracked locations on branches which no longer exist are pruned from the
    graph first, so that they aren't displayed.

    Args:
      repo: The Git repository.
      graph: The tracking graph.

    Raises:
      DetachedHeadError: if no branch is checked out.
      UpstreamMissingError: if the current branch has no upstream.

    Returns:
      The patch stack and how the current branch compares to its upstream.
    """
    current_branch = get_current_branch_name(repo)
    if current_branch is None:
        raise DetachedHeadError()
    graph.prune_deleted_branches(get_branch_names(repo))
    (upstream_branch, ahead, behind) = get_ahead_behind(repo)
    return ListResult(
        current_branch=current_branch,
        upstream_branch=upstream_branch,
        ahead=ahead,
        behind=behind,
        unpushed_commits=get_unpushed_commits(repo),
    )


def _render_headline(glyphs: Glyphs, result: ListResult) -> str:
    ahead = f"{glyphs.ahead}{result.ahead}"
    behind = f"{glyphs.behind}{result.behind}"
    return "{current} {arrow} {upstream} [{ahead} {behind}]".format(
        current=glyphs.color_fg(
            color=colorama.Fore.CYAN, message=result.current_branch
        ),
        arrow=glyphs.arrow,
        upstream=glyphs.color_fg(
            color=colorama.Fore.CYAN, message=result.upstream_branch
        ),
        ahead=glyphs.color_fg(
            color=colorama.Fore.GREEN if result.ahead > 0 else colorama.Fore.RESET,
            message=ahead,
        ),
        behind=glyphs.color_fg(
            color=colorama.Fore.RED if result.behind > 0 else colorama.Fore.RESET,
            message=behind,
        ),
    )


def ls(*, out: TextIO, git_executable: str) -> int:
    """List the commits of the patch stack.

    Args:
      out: The output stream to write to.
      git_executable: The path to the `git` executable on disk.

    Returns:
      Exit code (0 denotes successful exit).
    """
    glyphs = make_glyphs(out)
    repo = get_repo()
    config = load_config(repo)
    graph = TrackingGraph(make_graph_storage_for_repo(repo))
    try:
        result = list_commits(repo=repo, graph=graph)
    except GluError as e:
        out.write(render_error(glyphs, str(e)))
        return e.exit_code

    out.write(_render_headline(glyphs, result) + "\n")
    out.write("\n")
    if not result.unpushed_commits:
        out.write(f"No commits found ahead of {result.upstream_branch}\n")
        return 0

    commit_metadata_providers: List[CommitMetadataProvider] = [
        CommitIndexProvider(
            glyphs=glyphs, width=len(str(len(result.unpushed_commits)))
        ),
        CommitHashProvider(glyphs=glyphs),
        CommitSubjectProvider(),
        TrackedBranchesProvider(
            glyphs=glyphs, graph=graph, enabled=config.show_branches
        ),
    ]
    for commit in reversed(result.unpushed_commits):
        out.write(
            "  " + render_commit_metadata(commit_metadata_providers, commit) + "\n"
        )
    return 0
