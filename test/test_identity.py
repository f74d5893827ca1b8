import re

from glu.identity import (
    add_glu_id_to_message,
    extract_glu_id,
    generate_glu_id,
    has_glu_id,
    remove_glu_id_from_message,
)


def test_generate_glu_id_format() -> None:
    glu_id = generate_glu_id()
    assert re.match(r"^glu_[a-z0-9]+_[a-f0-9]{12}$", glu_id)


def test_generate_glu_id_unique() -> None:
    glu_ids = {generate_glu_id() for _ in range(100)}
    assert len(glu_ids) == 100


def test_extract_glu_id() -> None:
    assert (
        extract_glu_id("Add feature\n\nGlu-ID: glu_lx2k9f1c_4f2a9c01be77")
        == "glu_lx2k9f1c_4f2a9c01be77"
    )
    assert extract_glu_id("Add feature\n\nSome body text") is None
    assert extract_glu_id("") is None


def test_extract_glu_id_among_other_trailers() -> None:
    message = """\
Add feature

Longer description.

Signed-off-by: Testy McTestface <test@example.com>
Glu-ID: glu_test1_abc123
"""
    assert extract_glu_id(message) == "glu_test1_abc123"


def test_extract_glu_id_ignores_mentions_in_body() -> None:
    message = "Mention the Glu-ID: glu_nope_000000 trailer in prose"
    assert extract_glu_id(message) is None


def test_extract_glu_id_permissive_token() -> None:
    assert extract_glu_id("Fix\n\nGlu-ID: glu_test2_def456") == "glu_test2_def456"


def test_has_glu_id() -> None:
    assert has_glu_id("Fix\n\nGlu-ID: glu_test2_def456")
    assert not has_glu_id("Fix")


def test_add_glu_id_to_message() -> None:
    assert (
        add_glu_id_to_message("Add feature\n", "glu_test1_abc123")
        == "Add feature\n\nGlu-ID: glu_test1_abc123"
    )

    message = add_glu_id_to_message("Add feature")
    glu_id = extract_glu_id(message)
    assert glu_id is not None
    assert message == f"Add feature\n\nGlu-ID: {glu_id}"


def test_add_glu_id_never_replaces_existing() -> None:
    message = "Add feature\n\nGlu-ID: glu_test1_abc123"
    assert add_glu_id_to_message(message) == message
    assert add_glu_id_to_message(message, "glu_test9_fff999") == message


def test_add_then_extract() -> None:
    message = add_glu_id_to_message("Add feature\n\nWith a body.", "glu_test1_abc123")
    assert extract_glu_id(message) == "glu_test1_abc123"


def test_remove_glu_id_from_message() -> None:
    for message in ["Add feature", "Add feature\n", "Add feature\n\nWith a body.\n"]:
        assert remove_glu_id_from_message(add_glu_id_to_message(message)) == (
            message.strip()
        )

    assert remove_glu_id_from_message("No trailer here") == "No trailer here"


def test_remove_glu_id_keeps_other_trailers() -> None:
    message = """\
Add feature

Signed-off-by: Testy McTestface <test@example.com>
Glu-ID: glu_test1_abc123"""
    assert (
        remove_glu_id_from_message(message)
        == """\
Add feature

Signed-off-by: Testy McTestface <test@example.com>"""
    )
