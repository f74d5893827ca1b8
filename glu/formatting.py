"""Formatting and output helpers.

We try to handle both textual output and interactive output (output to a
"TTY"). In the case of interactive output, we render with prettier non-ASCII
characters and with colors, using shell-specific escape codes.
"""
from typing import TextIO

import colorama
from typing_extensions import Protocol


class Glyphs(Protocol):
    """Interface for glyphs to use for rendering command output."""

    bullet_point: str
    arrow: str
    ahead: str
    behind: str
    error_prefix: str

    def color_fg(self, color: str, message: str) -> str:  # pragma: no cover
        """Render the foreground (text) color for the given message.

        Args:
          color: The color to render the foreground as, e.g.
            `colorama.Fore.YELLOW`.
          message: The message to render.

        Returns:
          An updated message that potentially includes escape codes to render
          the color.
        """
        ...

    def style(self, style: str, message: str) -> str:  # pragma: no cover
        """Apply a certain style to the given message.

        Args:
          style: The style to apply, e.g. `colorama.Style.BRIGHT`.
          message: The message to render.

        Returns:
          An updated message that potentially includes escape codes to render
          the style.
        """
        ...


class TextGlyphs:
    """Glyphs used for output to a text file or non-TTY."""

    bullet_point = "-"
    arrow = "->"
    ahead = "+"
    behind = "-"
    error_prefix = "Error:"

    def color_fg(self, color: str, message: str) -> str:
        return message

    def style(self, style: str, message: str) -> str:
        return message


class PrettyGlyphs:
    """Glyphs used for output to a TTY."""

    bullet_point = "•"
    arrow = "→"
    ahead = "↑"
    behind = "↓"
    error_prefix = "✕"

    def __init__(self) -> None:
        colorama.init()

    def color_fg(self, color: str, message: str) -> str:
        return color + message + colorama.Fore.RESET

    def style(self, style: str, message: str) -> str:
        return style + message + colorama.Style.RESET_ALL


def make_glyphs(out: TextIO) -> Glyphs:
    """Make the `Glyphs` object appropriate for the provided output stream.

    Args:
      out: The output stream being written to.

    Returns:
      The `Glyphs` object.
    """
    if out.isatty():
        return PrettyGlyphs()
    else:
        return TextGlyphs()


def pluralize(amount: int, singular: str, plural: str) -> str:
    """Pluralize a quantity, as appropriate.

    Args:
      amount: The quantity to pluralize.
      singular: The string to return if singular.
      plural: The string to return if plural.

    Returns:
      The appropriately-pluralized amount as a string.
    """
    if amount == 1:
        return f"{amount} {singular}"
    else:
        return f"{amount} {plural}"


def render_error(glyphs: Glyphs, message: str) -> str:
    """Render an error message for the user.

    Args:
      glyphs: The glyphs to use.
      message: The message, possibly spanning multiple lines. The first line
        is highlighted.

    Returns:
      The rendered message.
    """
    (first_line, newline, rest) = message.partition("\n")
    header = glyphs.style(
        style=colorama.Style.BRIGHT,
        message=glyphs.color_fg(
            color=colorama.Fore.RED, message=f"{glyphs.error_prefix} {first_line}"
        ),
    )
    return header + newline + rest
