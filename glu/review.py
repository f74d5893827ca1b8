"""Publish a range of the patch stack as a branch for review.

The commits in the range are cherry-picked onto a temporary branch which
starts at the upstream branch, so the review branch contains only those
commits. The temporary branch is then renamed into the review branch,
optionally pushed, and every glu ID in the range is recorded in the tracking
graph as being on the review branch.

The branch the user is on is never left checked out in a different state:
if anything fails after the temporary branch is created, the cherry-pick is
aborted, the original branch is checked out again, and the temporary branch
is deleted.
"""
import logging
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, TextIO

import colorama
import pygit2

from . import branch_exists, get_current_branch_name, get_repo, run_git_silent
from .cherry_pick import abort_cherry_pick, stage_commits
from .commits import (
    Commit,
    IndexedCommit,
    get_commits_in_range,
    get_unpushed_commits,
    get_upstream_branch,
    require_clean_working_tree,
)
from .config import GluConfig, load_config
from .errors import (
    BranchAlreadyExistsError,
    DetachedHeadError,
    GluError,
    PushRejectedError,
    UnexpectedError,
)
from .formatting import Glyphs, make_glyphs, pluralize, render_error
from .gc import find_orphaned_branches
from .identity import extract_glu_id
from .naming import generate_branch_name
from .pr_url import build_pull_request_url
from .rewrite import STAGING_BRANCH_PREFIX, InjectionResult, ensure_commits_have_glu_ids
from .tracking import TrackingGraph, make_graph_storage_for_repo

TEMP_BRANCH_PREFIX = f"{STAGING_BRANCH_PREFIX}review-"

PUSH_REJECTED_MARKERS = ("[rejected]", "non-fast-forward", "fetch first")


class ReviewProgress:
    """Notified as `review_commits` moves from one step to the next.

    Each method is called before the corresponding work is done. The base
    class ignores every notification; override the ones you care about.
    """

    def on_validating_working_tree(self) -> None:
        pass

    def on_validating_range(self, range_spec: str) -> None:
        pass

    def on_injecting_glu_ids(self, num_commits: int) -> None:
        pass

    def on_glu_ids_injected(self, result: InjectionResult) -> None:
        pass

    def on_staging_commits(self, temp_branch: str, num_commits: int) -> None:
        pass

    def on_cherry_picking(self, current: int, total: int, commit: Commit) -> None:
        pass

    def on_naming_review_branch(self) -> None:
        pass

    def on_creating_review_branch(self, branch_name: str) -> None:
        pass

    def on_recording_tracking(self, branch_name: str) -> None:
        pass

    def on_pushing_branch(self, branch_name: str, remote: str) -> None:
        pass

    def on_cleaning_up(self) -> None:
        pass

    def on_done(self) -> None:
        pass


class TextReviewProgress(ReviewProgress):
    """Report progress to the user."""

    def __init__(self, out: TextIO, glyphs: Glyphs) -> None:
        self._out = out
        self._glyphs = glyphs

    def on_glu_ids_injected(self, result: InjectionResult) -> None:
        if result.commits_modified > 0:
            num_commits = pluralize(result.commits_modified, "commit", "commits")
            self._out.write(f"Added glu IDs to {num_commits}\n")

    def on_cherry_picking(self, current: int, total: int, commit: Commit) -> None:
        abbreviated_hash = self._glyphs.color_fg(
            color=colorama.Fore.YELLOW, message=f"{commit.hash:8.8}"
        )
        self._out.write(
            f"Cherry-picking {current}/{total}: {abbreviated_hash} {commit.subject}\n"
        )

    def on_creating_review_branch(self, branch_name: str) -> None:
        self._out.write(f"Creating branch {branch_name}\n")

    def on_pushing_branch(self, branch_name: str, remote: str) -> None:
        self._out.write(f"Pushing {branch_name} to {remote}\n")


@dataclass(frozen=True)
class ReviewResult:
    branch: str
    """The name of the review branch."""

    commits: List[IndexedCommit]
    """The commits of the patch stack which were put on the review branch.

    These are the commits as they are on the current branch, after any glu IDs
    were added.
    """

    injection: InjectionResult
    """How many commits of the patch stack were given a glu ID."""

    pushed: bool
    """Whether the review branch was pushed."""

    pull_request_url: Optional[str]
    """A link to open a pull request for the review branch, if it was pushed
    to a recognized host."""


def _make_temp_branch_name() -> str:
    return f"{TEMP_BRANCH_PREFIX}{int(time.time() * 1000)}"


def push_branch(
    repo: pygit2.Repository, git_executable: str, branch_name: str, remote: str
) -> None:
    """Push a branch and set it to track the pushed branch.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      branch_name: The local branch to push.
      remote: The name of the remote to push to.

    Raises:
      PushRejectedError: if the remote refused the update because it's not a
        fast-forward.
      subprocess.CalledProcessError: if pushing failed for any other reason.
    """
    try:
        run_git_silent(
            repo, git_executable, ["push", "--set-upstream", remote, branch_name]
        )
    except subprocess.CalledProcessError as e:
        stderr = e.stderr or ""
        if any(marker in stderr for marker in PUSH_REJECTED_MARKERS):
            raise PushRejectedError(
                branch_name=branch_name, remote=remote, reason="non-fast-forward"
            ) from e
        raise


def get_pull_request_url(
    repo: pygit2.Repository, remote: str, branch_name: str
) -> Optional[str]:
    try:
        remote_url = repo.remotes[remote].url
    except KeyError:
        return None
    if remote_url is None:
        return None
    return build_pull_request_url(remote_url, branch_name)


def _rollback(
    repo: pygit2.Repository,
    git_executable: str,
    original_branch: str,
    temp_branch: str,
) -> None:
    try:
        abort_cherry_pick(repo, git_executable)
    except subprocess.CalledProcessError as e:
        logging.warning(f"Failed to abort cherry-pick: {e.stderr}")

    if get_current_branch_name(repo) != original_branch:
        try:
            run_git_silent(repo, git_executable, ["checkout", original_branch])
        except subprocess.CalledProcessError as e:
            logging.warning(f"Failed to check out {original_branch}: {e.stderr}")

    if branch_exists(repo, temp_branch):
        try:
            run_git_silent(repo, git_executable, ["branch", "-D", temp_branch])
        except subprocess.CalledProcessError as e:
            logging.warning(f"Failed to delete branch {temp_branch}: {e.stderr}")


def review_commits(
    *,
    repo: pygit2.Repository,
    git_executable: str,
    graph: TrackingGraph,
    config: GluConfig,
    range_spec: str,
    branch_name: Optional[str] = None,
    push: bool = True,
    progress: Optional[ReviewProgress] = None,
) -> ReviewResult:
    """Create a review branch holding a range of the patch stack.

    Args:
      repo: The Git repository.
      git_executable: The path to the `git` executable on disk.
      graph: The tracking graph to record the review branch in.
      config: The settings to use.
      range_spec: The range of the patch stack to review, such as `"1-3"`.
      branch_name: The name of the review branch. Generated from the first
        commit of the range if not provided.
      push: Whether to push the review branch.
      progress: Notified before each step.

    Raises:
      WorkingTreeDirtyError: if there are uncommitted changes.
      DetachedHeadError: if no branch is checked out.
      UpstreamMissingError: if the current branch has no upstream.
      RangeInvalidError: if the range doesn't select any commits.
      CherryPickConflictError: if a commit of the range doesn't apply onto
        the upstream branch.
      CherryPickFailedError: if a commit couldn't be applied for another
        reason.
      BranchAlreadyExistsError: if the review branch already exists.
      PushRejectedError: if the remote refused the review branch.

    Returns:
      What was done.
    """
    if progress is None:
        progress = ReviewProgress()

    orphaned_branches = find_orphaned_branches(repo)
    if orphaned_branches:
        logging.warning(
            f"Found leftover branches from an interrupted run: "
            f"{', '.join(orphaned_branches)}. Run `glu gc` to delete them."
        )

    progress.on_validating_working_tree()
    require_clean_working_tree(repo)

    progress.on_validating_range(range_spec)
    original_branch = get_current_branch_name(repo)
    if original_branch is None:
        raise DetachedHeadError()
    commits = get_commits_in_range(repo, range_spec)
    upstream_oid = str(get_upstream_branch(repo, original_branch).target)

    # The whole stack is rewritten, so that the commits after the range are
    # carried along when the branch is moved.
    unpushed_commits = get_unpushed_commits(repo)
    progress.on_injecting_glu_ids(len(unpushed_commits))
    injection = ensure_commits_have_glu_ids(
        repo=repo, git_executable=git_executable, commits=unpushed_commits
    )
    progress.on_glu_ids_injected(injection)
    if injection.commits_modified > 0:
        commits = get_commits_in_range(repo, range_spec)

    temp_branch = _make_temp_branch_name()
    progress.on_staging_commits(temp_branch, len(commits))
    run_git_silent(repo, git_executable, ["branch", temp_branch, upstream_oid])
    try:
        stage_commits(
            repo=repo,
            git_executable=git_executable,
            commits=commits,
            staging_branch=temp_branch,
            on_commit=progress.on_cherry_picking,
        )

        progress.on_naming_review_branch()
        review_branch = generate_branch_name(
            config, commits, custom_name=branch_name, range_spec=range_spec
        )
        progress.on_creating_review_branch(review_branch)
        if branch_exists(repo, review_branch):
            raise BranchAlreadyExistsError(review_branch)
        run_git_silent(repo, git_executable, ["branch", review_branch, temp_branch])

        progress.on_recording_tracking(review_branch)
        for commit in commits:
            glu_id = extract_glu_id(commit.body)
            if glu_id is not None:
                graph.record_commit_location(glu_id, review_branch, commit.hash)

        pull_request_url = None
        if push:
            progress.on_pushing_branch(review_branch, config.remote)
            push_branch(repo, git_executable, review_branch, config.remote)
            graph.mark_branch_pushed(review_branch, config.remote)
            pull_request_url = get_pull_request_url(repo, config.remote, review_branch)

        progress.on_cleaning_up()
        run_git_silent(repo, git_executable, ["branch", "-D", temp_branch])
    except Exception:
        _rollback(
            repo=repo,
            git_executable=git_executable,
            original_branch=original_branch,
            temp_branch=temp_branch,
        )
        raise

    progress.on_done()
    return ReviewResult(
        branch=review_branch,
        commits=commits,
        injection=injection,
        pushed=push,
        pull_request_url=pull_request_url,
    )


def request_review(
    *,
    out: TextIO,
    err: TextIO,
    git_executable: str,
    range_spec: str,
    branch_name: Optional[str],
    push: bool,
) -> int:
    """Create a review branch from a range of the patch stack.

    Args:
      out: The output stream to write to.
      err: The error stream to write to.
      git_executable: The path to the `git` executable on disk.
      range_spec: The range of commits to review, such as `"1-3"`.
      branch_name: The name of the review branch, if not generated.
      push: Whether to push the review branch.

    Returns:
      Exit code (0 denotes successful exit).
    """
    glyphs = make_glyphs(out)
    repo = get_repo()
    config = load_config(repo)
    graph = TrackingGraph(make_graph_storage_for_repo(repo))
    try:
        result = review_commits(
            repo=repo,
            git_executable=git_executable,
            graph=graph,
            config=config,
            range_spec=range_spec,
            branch_name=branch_name,
            push=push,
            progress=TextReviewProgress(out=out, glyphs=glyphs),
        )
    except GluError as e:
        err.write(render_error(glyphs, str(e)))
        return e.exit_code
    except Exception as e:
        error = UnexpectedError(e)
        err.write(render_error(glyphs, str(error)))
        return error.exit_code

    review_branch = glyphs.color_fg(color=colorama.Fore.GREEN, message=result.branch)
    out.write(
        f"Created {review_branch} with "
        f"{pluralize(len(result.commits), 'commit', 'commits')}:\n"
    )
    for commit in result.commits:
        abbreviated_hash = glyphs.color_fg(
            color=colorama.Fore.YELLOW, message=f"{commit.hash:8.8}"
        )
        out.write(f"  {glyphs.bullet_point} {abbreviated_hash} {commit.subject}\n")
    if result.pushed:
        out.write(f"Pushed to {config.remote}\n")
    else:
        out.write(
            f"Not pushed. To push it later: "
            f"git push --set-upstream {config.remote} {result.branch}\n"
        )
    if result.pull_request_url is not None:
        out.write(f"Open a pull request: {glyphs.arrow} {result.pull_request_url}\n")
    return 0
