import io

from glu.__main__ import main
from helpers import Git


def test_main_help(git: Git) -> None:
    with io.StringIO() as out, io.StringIO() as err:
        assert main(["--help"], out=out, err=err, git_executable="git") == 0
        assert out.getvalue().startswith("usage: glu")


def test_main_no_subcommand(git: Git) -> None:
    with io.StringIO() as out, io.StringIO() as err:
        assert main([], out=out, err=err, git_executable="git") == 1


def test_main_review_alias(git: Git) -> None:
    git.init_repo()
    git.create_stack(["glu_test1_abc123"])

    with io.StringIO() as out, io.StringIO() as err:
        assert (
            main(
                ["rr", "1", "--no-push", "-b", "my-review"],
                out=out,
                err=err,
                git_executable=git.git_executable,
            )
            == 0
        )
    assert "my-review" in git.get_branches()


def test_main_ls_and_gc(git: Git) -> None:
    git.init_repo()
    git.create_stack([None])

    with io.StringIO() as out, io.StringIO() as err:
        assert main(["ls"], out=out, err=err, git_executable=git.git_executable) == 0
        assert "Add feature 1" in out.getvalue()

    with io.StringIO() as out, io.StringIO() as err:
        assert main(["gc"], out=out, err=err, git_executable=git.git_executable) == 0


def test_main_request_review_alias(git: Git) -> None:
    git.init_repo()
    git.create_stack(["glu_test1_abc123"])

    with io.StringIO() as out, io.StringIO() as err:
        assert (
            main(
                ["request-review", "1", "--no-push"],
                out=out,
                err=err,
                git_executable=git.git_executable,
            )
            == 0
        )
        assert "Created add-feature-1" in out.getvalue()
    assert "add-feature-1" in git.get_branches()
