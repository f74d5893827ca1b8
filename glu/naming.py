"""Generate names for review branches."""
import re
from typing import Optional, Sequence

from .commits import Commit
from .config import GluConfig

FALLBACK_BRANCH_PREFIX = "glu/tmp/"


def _strip_prefixes(config: GluConfig, message: str) -> str:
    for prefix in config.strip_prefixes:
        message = re.sub(
            rf"^{re.escape(prefix)}\s*", "", message, flags=re.IGNORECASE
        )
    return message


def _sanitize(config: GluConfig, message: str) -> str:
    separator = config.separator
    message = re.sub(r"[^a-z0-9\s-]", "", message)
    message = re.sub(r"\s+", separator, message)
    message = re.sub(r"-+", separator, message)
    message = re.sub(r"^-|-$", "", message)
    return message[: config.max_branch_length]


def format_commit_subject(config: GluConfig, subject: str) -> str:
    """Turn a commit subject into the body of a branch name.

    Args:
      config: The settings to use.
      subject: The first line of the commit message.

    Returns:
      The branch name (without prefix). May be empty if the subject had no
      usable characters.
    """
    return _sanitize(config, _strip_prefixes(config, subject.lower()))


def _apply_prefix(config: GluConfig, branch_name: str) -> str:
    return f"{config.branch_prefix}{branch_name}"


def _fallback_name(config: GluConfig, range_spec: str) -> str:
    return _apply_prefix(config, f"{FALLBACK_BRANCH_PREFIX}{range_spec}")


def generate_branch_name(
    config: GluConfig,
    commits: Sequence[Commit],
    custom_name: Optional[str] = None,
    range_spec: Optional[str] = None,
) -> str:
    """Generate the name of the review branch for some commits.

    The name is derived from the subject of the first commit, e.g. `feat: Add
    login page` becomes `add-login-page`.

    Args:
      config: The settings to use.
      commits: The commits to be reviewed, oldest first.
      custom_name: A name chosen by the user. Used as-is if provided.
      range_spec: The range the commits were selected with. Used in the
        fallback name if no name can be derived from the commits.

    Returns:
      The branch name.
    """
    if custom_name:
        return custom_name

    if not commits:
        return _fallback_name(config, range_spec or "unknown")

    formatted = format_commit_subject(config, commits[0].subject)
    if not formatted:
        return _fallback_name(config, range_spec or "1")
    return _apply_prefix(config, formatted)
