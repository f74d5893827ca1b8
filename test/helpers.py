import difflib
import os
import subprocess
import sys
from typing import List, Optional, Sequence

import py
import pygit2

DUMMY_NAME = "Testy McTestface"
DUMMY_EMAIL = "test@example.com"
DUMMY_DATE = "Wed 29 Oct 12:34:56 2020 PDT"


class Git:
    def __init__(self, path: py.path.local, git_executable: str) -> None:
        self.path = path
        self.git_executable = git_executable

    @property
    def remote_path(self) -> py.path.local:
        # Outside of the working copy, so that it doesn't show up as untracked.
        return self.path.dirpath().join("remote.git")

    def init_repo(self, make_initial_commit: bool = True) -> None:
        self.run("init")
        self.run("symbolic-ref", ["HEAD", "refs/heads/main"])
        self.run("config", ["user.name", DUMMY_NAME])
        self.run("config", ["user.email", DUMMY_EMAIL])

        # Silence some log-spam.
        self.run("config", ["advice.detachedHead", "false"])

        self.run("init", ["--bare", str(self.remote_path)])
        self.run("remote", ["add", "origin", str(self.remote_path)])

        if make_initial_commit:
            self.commit_file(name="initial", time=0)

    def get_repo(self) -> pygit2.Repository:
        return pygit2.Repository(str(self.path))

    def run(
        self,
        command: str,
        args: Optional[List[str]] = None,
        time: int = 0,
        check: bool = True,
    ) -> str:
        if args is None:
            args = []
        args = [self.git_executable, command, *args]

        # Required for determinism, as these values will be baked into the commit
        # hash.
        date = f"{DUMMY_DATE} -{time:02d}00"
        env = dict(os.environ)
        env.update(
            {
                "GIT_AUTHOR_DATE": date,
                "GIT_COMMITTER_DATE": date,
                "GIT_EDITOR": "true",
            }
        )

        result = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            env=env,
            check=check,
        )
        return result.stdout.decode()

    def rev_parse(self, rev: str) -> str:
        return self.run("rev-parse", [rev]).strip()

    def get_message(self, rev: str) -> str:
        return self.run("log", ["-1", "--format=%B", rev]).strip()

    def get_subjects(self, rev: str) -> List[str]:
        """Get the subjects of the commits reachable from `rev`, newest first."""
        return self.run("log", ["--format=%s", rev]).splitlines()

    def get_branches(self) -> List[str]:
        return self.run("branch", ["--format=%(refname:short)"]).splitlines()

    def commit_file(
        self,
        name: str,
        time: int,
        contents: Optional[str] = None,
        message: Optional[str] = None,
    ) -> str:
        path = os.path.join(os.getcwd(), f"{name}.txt")
        with open(path, "w") as f:
            if contents is None:
                f.write(f"{name} contents\n")
            else:
                f.write(contents)
                f.write("\n")
        self.run("add", ["."])
        if message is None:
            message = f"create {name}.txt"
        self.run("commit", ["-m", message], time=time)
        return self.rev_parse("HEAD")

    def set_upstream(self, rev: str = "HEAD", branch: str = "main") -> None:
        """Pretend that `rev` is where `branch` is on `origin`, and track it."""
        self.run("update-ref", [f"refs/remotes/origin/{branch}", self.rev_parse(rev)])
        self.run("config", [f"branch.{branch}.remote", "origin"])
        self.run("config", [f"branch.{branch}.merge", f"refs/heads/{branch}"])

    def create_stack(self, glu_ids: Sequence[Optional[str]]) -> List[str]:
        """Create unpushed commits on top of a tracked upstream.

        Args:
          glu_ids: For each commit to create, the glu ID to give it, or `None`
            to create it without one.

        Returns:
          The hashes of the created commits, oldest first.
        """
        self.set_upstream()
        hashes = []
        for (i, glu_id) in enumerate(glu_ids, start=1):
            message = f"Add feature {i}"
            if glu_id is not None:
                message += f"\n\nGlu-ID: {glu_id}"
            hashes.append(
                self.commit_file(name=f"feature{i}", time=i, message=message)
            )
        return hashes

    def detach_head(self) -> None:
        self.run("checkout", ["--detach", "HEAD"])


def _rstrip_lines(lines: str) -> List[str]:
    return [line.rstrip() + "\n" for line in lines.splitlines()]


def compare(actual: str, expected: str) -> None:
    actual_lines = _rstrip_lines(actual)
    expected_lines = _rstrip_lines(expected)

    sys.stdout.writelines(
        difflib.context_diff(
            expected_lines, actual_lines, fromfile="Expected", tofile="Actual", n=999
        )
    )
    assert actual == expected
