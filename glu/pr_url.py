"""Build links for opening a pull request from a pushed branch."""
import re
import urllib.parse
from typing import Optional

GITHUB_RE = re.compile(
    r"""
^
(?:git@github\.com:|https://github\.com/)
(?P<owner>.+?)
/
(?P<repo>.+?)
(?:\.git)?
$
""",
    re.VERBOSE,
)

GITLAB_RE = re.compile(
    r"""
^
(?:git@|https://)gitlab\.com[:/]
(?P<owner>.+?)
/
(?P<repo>.+?)
(?:\.git)?
$
""",
    re.VERBOSE,
)

BITBUCKET_RE = re.compile(
    r"""
^
(?:git@|https://)bitbucket\.org[:/]
(?P<owner>.+?)
/
(?P<repo>.+?)
(?:\.git)?
$
""",
    re.VERBOSE,
)


def build_pull_request_url(remote_url: str, branch: str) -> Optional[str]:
    """Get the URL which opens a new pull request for a branch.

    Args:
      remote_url: The URL of the remote the branch was pushed to.
      branch: The name of the pushed branch.

    Returns:
      The URL, or `None` if the remote isn't hosted somewhere we recognize.
    """
    match = GITHUB_RE.match(remote_url)
    if match is not None:
        return (
            f"https://github.com/{match.group('owner')}/{match.group('repo')}"
            f"/pull/new/{branch}"
        )

    match = GITLAB_RE.match(remote_url)
    if match is not None:
        encoded_branch = urllib.parse.quote(branch, safe="")
        return (
            f"https://gitlab.com/{match.group('owner')}/{match.group('repo')}"
            f"/-/merge_requests/new?merge_request[source_branch]={encoded_branch}"
        )

    match = BITBUCKET_RE.match(remote_url)
    if match is not None:
        return (
            f"https://bitbucket.org/{match.group('owner')}/{match.group('repo')}"
            f"/pull-requests/new?source={branch}"
        )

    return None
