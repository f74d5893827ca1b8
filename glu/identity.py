"""Persistent commit identities ("glu IDs").

Git identifies commits by the hash of their contents, so amending, rebasing
or cherry-picking a commit gives it a new hash. To recognize the same logical
commit across rewrites, we store an identity in the commit message itself,
as a trailer:

    Add feature B

    Glu-ID: glu_lx2k9f1c_4f2a9c01be77

The identity is carried along by every Git operation which preserves the
commit message, and is readable by plain `git log`.

Glu IDs have the form `glu_<timestamp>_<random>`. The timestamp is the
creation time in milliseconds, in base 36, so that IDs sort lexicographically
by creation time (until the year ~5000, when the timestamp gains a digit). The
random part is 6 bytes of hex, which makes collisions between IDs generated
in the same millisecond negligible (about 1 in 16^12).
"""
import re
import secrets
import string
import time
from typing import Optional

GLU_ID_PREFIX = "glu"

GLU_ID_TRAILER_KEY = "Glu-ID"

# Deliberately permissive about the token after `glu_`, since commits tagged
# by earlier versions (or by hand) must keep being recognized.
GLU_ID_RE = re.compile(
    r"""
^
Glu-ID:[ ]
(?P<glu_id>glu_\w+)
""",
    re.VERBOSE | re.MULTILINE,
)

GLU_ID_TRAILER_RE = re.compile(
    r"""
\n{0,2}
^
Glu-ID:[ ]glu_\w+
""",
    re.VERBOSE | re.MULTILINE,
)

_BASE36_DIGITS = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value > 0:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_glu_id() -> str:
    """Generate a new, unique glu ID.

    Returns:
      A glu ID such as `glu_lx2k9f1c_4f2a9c01be77`.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    random = secrets.token_bytes(6).hex()
    return f"{GLU_ID_PREFIX}_{timestamp}_{random}"


def extract_glu_id(message: str) -> Optional[str]:
    """Extract the glu ID from a commit message.

    Args:
      message: The full commit message.

    Returns:
      The first glu ID found in a `Glu-ID:` trailer line, or `None` if the
      message doesn't have one.
    """
    match = GLU_ID_RE.search(message)
    if match is None:
        return None
    return match.group("glu_id")


def has_glu_id(message: str) -> bool:
    """Determine whether a commit message carries a glu ID.

    Args:
      message: The full commit message.

    Returns:
      Whether or not the message has a `Glu-ID:` trailer.
    """
    return extract_glu_id(message) is not None


def add_glu_id_to_message(message: str, glu_id: Optional[str] = None) -> str:
    """Add a glu ID trailer to a commit message.

    Messages which already carry a glu ID are returned unchanged, even if a
    different `glu_id` is passed. An identity, once assigned, is never
    replaced.

    Args:
      message: The full commit message.
      glu_id: The glu ID to add. If not provided, a new one is generated.

    Returns:
      The message with the trailer appended after a blank line.
    """
    if has_glu_id(message):
        return message

    if glu_id is None:
        glu_id = generate_glu_id()
    return f"{message.strip()}\n\n{GLU_ID_TRAILER_KEY}: {glu_id}"


def remove_glu_id_from_message(message: str) -> str:
    """Remove the glu ID trailer from a commit message.

    Only the first `Glu-ID:` line (and the blank line before it) is removed.
    Other trailers are left as they are.

    Args:
      message: The full commit message.

    Returns:
      The message without its glu ID, or the message unchanged if it didn't
      have one.
    """
    return GLU_ID_TRAILER_RE.sub("", message, count=1)
