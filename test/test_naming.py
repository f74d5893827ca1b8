from typing import List

from glu.commits import Commit
from glu.config import GluConfig
from glu.naming import format_commit_subject, generate_branch_name


def _make_commits(*subjects: str) -> List[Commit]:
    return [
        Commit(hash=f"{i:040x}", subject=subject, body=f"{subject}\n")
        for (i, subject) in enumerate(subjects)
    ]


def test_format_commit_subject() -> None:
    config = GluConfig()
    assert format_commit_subject(config, "Add login page") == "add-login-page"
    assert format_commit_subject(config, "feat: Add login page") == "add-login-page"
    assert format_commit_subject(config, "FIX: handle  empty   input") == (
        "handle-empty-input"
    )
    assert format_commit_subject(config, "Update README.md (v2)!") == (
        "update-readmemd-v2"
    )
    assert format_commit_subject(config, "- leading and trailing -") == (
        "leading-and-trailing"
    )


def test_format_commit_subject_scoped_prefix() -> None:
    # Only the opening of a scoped prefix is stripped; the rest is sanitized.
    config = GluConfig()
    assert format_commit_subject(config, "feat(auth): Add login") == "auth-add-login"


def test_format_commit_subject_truncates() -> None:
    config = GluConfig(max_branch_length=10)
    assert format_commit_subject(config, "Add a very long feature name") == (
        "add-a-very"
    )


def test_format_commit_subject_custom_separator() -> None:
    config = GluConfig(separator="_")
    assert format_commit_subject(config, "Add login page") == "add_login_page"


def test_generate_branch_name() -> None:
    config = GluConfig()
    commits = _make_commits("feat: Add feature B", "Fix feature A")
    assert generate_branch_name(config, commits) == "add-feature-b"


def test_generate_branch_name_with_prefix() -> None:
    config = GluConfig(branch_prefix="jane/")
    commits = _make_commits("Add feature B")
    assert generate_branch_name(config, commits) == "jane/add-feature-b"


def test_generate_branch_name_custom_name() -> None:
    config = GluConfig(branch_prefix="jane/")
    commits = _make_commits("Add feature B")
    assert generate_branch_name(config, commits, custom_name="my-review") == (
        "my-review"
    )


def test_generate_branch_name_fallback() -> None:
    config = GluConfig()
    assert generate_branch_name(config, [], range_spec="1-2") == "glu/tmp/1-2"
    assert generate_branch_name(config, _make_commits("!!!"), range_spec="3") == (
        "glu/tmp/3"
    )
    assert generate_branch_name(config, _make_commits("!!!")) == "glu/tmp/1"
