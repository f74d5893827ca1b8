"""Errors reported to the user.

Each error renders its own remediation message via `str()`, and carries the
exit code that the command should return when it's the reason for failing.
"""
from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from .commits import Commit


class GluError(Exception):
    """Base class for errors which are reported to the user."""

    exit_code = 1

    def __str__(self) -> str:
        return "An unexpected error occurred.\n"


class WorkingTreeDirtyError(GluError):
    exit_code = 2

    def __init__(
        self,
        modified: Sequence[str] = (),
        staged: Sequence[str] = (),
        untracked: Sequence[str] = (),
    ) -> None:
        super().__init__()
        self.modified = list(modified)
        self.staged = list(staged)
        self.untracked = list(untracked)

    def __str__(self) -> str:
        lines = ["Working tree is not clean", ""]
        for (title, paths) in [
            ("Modified files:", self.modified),
            ("Staged files:", self.staged),
            ("Untracked files:", self.untracked),
        ]:
            if paths:
                lines.append(title)
                lines.extend(f"  - {path}" for path in paths)
                lines.append("")
        lines.extend(
            [
                "Please commit or stash your changes before proceeding:",
                "  git add .",
                '  git commit -m "your message"',
                "or",
                "  git stash",
            ]
        )
        return "\n".join(lines) + "\n"


class RangeInvalidError(GluError):
    exit_code = 3

    def __init__(
        self, range_spec: str, reason: str, available_commits: Optional[int] = None
    ) -> None:
        super().__init__()
        self.range_spec = range_spec
        self.reason = reason
        self.available_commits = available_commits

    def __str__(self) -> str:
        lines = [f"Invalid commit range: {self.range_spec}", "", self.reason, ""]
        if self.available_commits:
            lines.append(f"Available commits: 1-{self.available_commits}")
        lines.extend(
            [
                "Use 'glu ls' to see available commits and their indices.",
                "",
                "Valid range formats:",
                '  - Single commit: "2"',
                '  - Range: "1-3"',
            ]
        )
        return "\n".join(lines) + "\n"


class BranchNotFoundError(GluError):
    exit_code = 4

    def __init__(self, branch_name: str) -> None:
        super().__init__()
        self.branch_name = branch_name

    def __str__(self) -> str:
        return f"""\
Branch not found: {self.branch_name}

To see all branches:
  git branch -a
"""


class UpstreamMissingError(GluError):
    exit_code = 5

    def __init__(self, branch_name: str) -> None:
        super().__init__()
        self.branch_name = branch_name

    def __str__(self) -> str:
        return f"""\
No upstream branch for: {self.branch_name}

The patch stack is made of the commits which aren't on the upstream branch,
so an upstream branch is required. To set one:
  git branch --set-upstream-to=origin/<branch> {self.branch_name}
"""


class DetachedHeadError(GluError):
    exit_code = 6

    def __str__(self) -> str:
        return """\
Cannot perform this operation in detached HEAD state

You're not currently on a branch. Please check out a branch first:
  git checkout <branch-name>
or create a new branch:
  git checkout -b <new-branch-name>
"""


class CherryPickConflictError(GluError):
    exit_code = 7

    def __init__(
        self,
        commit: "Commit",
        commit_index: int,
        total_commits: int,
        applied_count: int,
        conflict_files: List[str],
    ) -> None:
        super().__init__()
        self.commit = commit
        self.commit_index = commit_index
        self.total_commits = total_commits
        self.applied_count = applied_count
        self.conflict_files = conflict_files

    def __str__(self) -> str:
        lines = [
            f"Cherry-pick conflict on commit {self.commit_index}/{self.total_commits}",
            "",
            f"Commit: {self.commit.hash:8.8} {self.commit.subject}",
        ]
        if self.applied_count > 0:
            lines.append(f"Successfully applied: {self.applied_count} commit(s)")
        lines.append("")
        lines.append("Conflicting files:")
        lines.extend(f"  - {path}" for path in self.conflict_files)
        lines.extend(
            [
                "",
                "The cherry-pick has been aborted. Your repository is back to a clean"
                " state.",
                "",
                "To resolve this, either:",
                "  - rebase your stack so that this commit applies cleanly on its own,"
                " or",
                "  - include the commits it depends on in the range.",
            ]
        )
        return "\n".join(lines) + "\n"


class CherryPickFailedError(GluError):
    exit_code = 8

    def __init__(
        self, commit: "Commit", commit_index: int, original_error: str
    ) -> None:
        super().__init__()
        self.commit = commit
        self.commit_index = commit_index
        self.original_error = original_error

    def __str__(self) -> str:
        return f"""\
Failed to cherry-pick commit {self.commit_index}

Commit: {self.commit.hash:8.8} {self.commit.subject}

Error: {self.original_error.strip()}

The operation has been aborted.
"""


class BranchAlreadyExistsError(GluError):
    exit_code = 9

    def __init__(self, branch_name: str) -> None:
        super().__init__()
        self.branch_name = branch_name

    def __str__(self) -> str:
        return f"""\
Branch already exists: {self.branch_name}

To fix this:
  - Delete the existing branch: git branch -D {self.branch_name}
  - Or pick another name: glu review <range> --branch <name>
"""


class PushRejectedError(GluError):
    exit_code = 10

    def __init__(self, branch_name: str, remote: str, reason: str) -> None:
        super().__init__()
        self.branch_name = branch_name
        self.remote = remote
        self.reason = reason

    def __str__(self) -> str:
        return f"""\
Failed to push {self.branch_name} to {self.remote}

Reason: {self.reason}

The remote branch has commits that you don't have locally.

To fix this:
  - Pull and rebase: git pull --rebase {self.remote} {self.branch_name}
  - Force push (CAUTION): git push --force {self.remote} {self.branch_name}
"""


class UnexpectedError(GluError):
    exit_code = 1

    def __init__(self, original_error: BaseException) -> None:
        super().__init__()
        self.original_error = original_error

    def __str__(self) -> str:
        detail = str(self.original_error)
        stderr = getattr(self.original_error, "stderr", None)
        if stderr:
            detail = f"{detail}\n{stderr.strip()}"
        return f"An unexpected error occurred: {detail}\n"
