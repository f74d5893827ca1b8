"""Additional metadata to display for commits.

These are rendered on each line of `glu ls`, after the commit's position in
the patch stack.
"""
from typing import Callable, Dict, List, Optional

import colorama

from .commits import IndexedCommit
from .formatting import Glyphs
from .identity import extract_glu_id
from .tracking import TrackingGraph

CommitMetadataProvider = Callable[[IndexedCommit], Optional[str]]
"""Interface to display information about a commit in `glu ls`."""

MAX_SUBJECT_LENGTH = 60


def render_commit_metadata(
    commit_metadata_providers: List[CommitMetadataProvider],
    commit: IndexedCommit,
) -> str:
    """Get the complete description for a given commit.

    Args:
      commit_metadata_providers: The providers of the metadata for the
        commit. These are displayed in order and concatenated with two
        spaces.
      commit: The commit to render the metadata for.

    Returns:
      A string of metadata describing the commit.
    """
    metadata_list: List[Optional[str]] = [
        provider(commit) for provider in commit_metadata_providers
    ]
    return "  ".join(text for text in metadata_list if text is not None)


class CommitIndexProvider:
    """Display the position of the commit in the patch stack."""

    def __init__(self, glyphs: Glyphs, width: int) -> None:
        self._glyphs = glyphs
        self._width = width

    def __call__(self, commit: IndexedCommit) -> Optional[str]:
        return self._glyphs.color_fg(
            color=colorama.Fore.CYAN, message=f"{commit.index:>{self._width}}"
        )


class CommitHashProvider:
    """Display an abbreviated commit hash."""

    def __init__(self, glyphs: Glyphs) -> None:
        self._glyphs = glyphs

    def __call__(self, commit: IndexedCommit) -> Optional[str]:
        return self._glyphs.color_fg(
            color=colorama.Fore.YELLOW, message=f"{commit.hash:7.7}"
        )


class CommitSubjectProvider:
    """Display the first line of the commit message, shortened if need be."""

    def __call__(self, commit: IndexedCommit) -> Optional[str]:
        subject = commit.subject
        if len(subject) > MAX_SUBJECT_LENGTH:
            return subject[: MAX_SUBJECT_LENGTH - 3] + "..."
        return subject


class TrackedBranchesProvider:
    """Display the review branches that a commit was published on.

    Branches which were pushed are shown in green, and those which only exist
    locally in yellow.
    """

    def __init__(self, glyphs: Glyphs, graph: TrackingGraph, enabled: bool) -> None:
        self._glyphs = glyphs
        self._is_enabled = enabled
        self._tracked_commits = graph.get_all_tracked_commits() if enabled else {}

    def __call__(self, commit: IndexedCommit) -> Optional[str]:
        if not self._is_enabled:
            return None

        glu_id = extract_glu_id(commit.body)
        if glu_id is None:
            return None

        tracking = self._tracked_commits.get(glu_id)
        if tracking is None:
            return None

        pushed: Dict[str, bool] = {}
        for location in tracking.locations:
            pushed[location.branch] = (
                pushed.get(location.branch, False) or location.status == "pushed"
            )
        if not pushed:
            return None

        branches = ", ".join(
            self._glyphs.color_fg(
                color=colorama.Fore.GREEN if is_pushed else colorama.Fore.YELLOW,
                message=branch,
            )
            for (branch, is_pushed) in sorted(pushed.items())
        )
        return f"({branches})"
