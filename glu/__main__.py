"""Main entry-point."""
import argparse
import logging
import os
import sys
from typing import List, TextIO

from .gc import gc
from .ls import ls
from .review import request_review


def main(argv: List[str], *, out: TextIO, err: TextIO, git_executable: str) -> int:
    """Run the provided sub-command.

    Args:
      argv: List of command-line arguments (e.g. from `sys.argv`).
      out: Output stream to write to (may be a TTY).
      err: Error stream to write to.
      git_executable: The path to the `git` executable on disk.

    Returns:
      Exit code (0 denotes successful exit).
    """
    logging.basicConfig(level=logging.WARNING)

    parser = argparse.ArgumentParser(prog="glu", add_help=False)
    parser.add_argument(
        "-h", "--help", action="store_true", help="show this help message and exit"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug logging."
    )
    subparsers = parser.add_subparsers(
        dest="subcommand",
    )

    review_parser = subparsers.add_parser(
        "review",
        aliases=["request-review", "rr"],
        help="Create a review branch from a range of the patch stack.",
    )
    review_parser.add_argument(
        "range", type=str, help='The commits to review, e.g. "2" or "1-3".'
    )
    review_parser.add_argument(
        "-b",
        "--branch",
        type=str,
        help="The name of the review branch. Generated from the first commit "
        "of the range if not provided.",
    )
    review_parser.add_argument(
        "--no-push",
        dest="push",
        action="store_false",
        help="Create the review branch without pushing it.",
    )
    subparsers.add_parser(
        "ls", help="List the commits of the patch stack and their review branches."
    )
    subparsers.add_parser(
        "gc", help="Delete leftover temporary branches and stale tracking data."
    )

    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.help:
        parser.print_help(file=out)
        return 0
    elif args.subcommand in ["review", "request-review", "rr"]:
        return request_review(
            out=out,
            err=err,
            git_executable=git_executable,
            range_spec=args.range,
            branch_name=args.branch,
            push=args.push,
        )
    elif args.subcommand == "ls":
        return ls(out=out, git_executable=git_executable)
    elif args.subcommand == "gc":
        return gc(out=out, git_executable=git_executable)
    else:
        parser.print_usage(file=out)
        return 1


def entry_point() -> None:
    # `PATH_TO_GIT` set in testing.
    git_executable = os.environ.get("PATH_TO_GIT", "git")

    sys.exit(
        main(
            sys.argv[1:], out=sys.stdout, err=sys.stderr, git_executable=git_executable
        )
    )


if __name__ == "__main__":
    entry_point()
