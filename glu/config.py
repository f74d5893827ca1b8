"""Settings read from the Git configuration.

All settings live in the `glu` section, so they can be set per-repository or
globally with `git config`:

    git config glu.branchPrefix "jane/"
    git config --add glu.stripPrefix "build:"
"""
from dataclasses import dataclass
from typing import List, Tuple

import pygit2

DEFAULT_STRIP_PREFIXES = (
    "feat:",
    "feat(",
    "fix:",
    "fix(",
    "docs:",
    "docs(",
    "style:",
    "style(",
    "refactor:",
    "refactor(",
    "test:",
    "test(",
    "chore:",
    "chore(",
)


@dataclass(frozen=True)
class GluConfig:
    branch_prefix: str = ""
    """Prepended to every generated review branch name."""

    separator: str = "-"
    """Replaces whitespace in generated review branch names."""

    max_branch_length: int = 50
    """Generated review branch names are truncated to this length (before the
    prefix is applied)."""

    strip_prefixes: Tuple[str, ...] = DEFAULT_STRIP_PREFIXES
    """Conventional-commit prefixes removed from the commit subject before it
    is turned into a branch name."""

    remote: str = "origin"
    """The remote review branches are pushed to."""

    show_branches: bool = True
    """Whether `glu ls` shows the review branches each commit is tracked on."""


def _get_str(repo: pygit2.Repository, name: str, default: str) -> str:
    try:
        return repo.config[f"glu.{name}"]
    except KeyError:
        return default


def _get_int(repo: pygit2.Repository, name: str, default: int) -> int:
    try:
        return repo.config.get_int(f"glu.{name}")
    except KeyError:
        return default


def _get_bool(repo: pygit2.Repository, name: str, default: bool) -> bool:
    try:
        return repo.config.get_bool(f"glu.{name}")
    except KeyError:
        return default


def _get_multivar(
    repo: pygit2.Repository, name: str, default: Tuple[str, ...]
) -> Tuple[str, ...]:
    values: List[str] = list(repo.config.get_multivar(f"glu.{name}"))
    if not values:
        return default
    return tuple(values)


def load_config(repo: pygit2.Repository) -> GluConfig:
    """Load the settings for the given repository.

    Args:
      repo: The Git repository.

    Returns:
      The settings, with defaults for anything not configured.
    """
    defaults = GluConfig()
    return GluConfig(
        branch_prefix=_get_str(repo, "branchPrefix", defaults.branch_prefix),
        separator=_get_str(repo, "separator", defaults.separator),
        max_branch_length=_get_int(
            repo, "maxBranchLength", defaults.max_branch_length
        ),
        strip_prefixes=_get_multivar(repo, "stripPrefix", defaults.strip_prefixes),
        remote=_get_str(repo, "remote", defaults.remote),
        show_branches=_get_bool(repo, "list.showBranches", defaults.show_branches),
    )
