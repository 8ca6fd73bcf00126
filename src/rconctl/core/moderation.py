"""Nickname moderation.

Nicknames may carry inline formatting tags such as ``<rainbow>`` or
``<color:#ff0000>``. Tags are stripped, then the remaining text is
checked for code-block escapes, links and invite domains. Any run of
non-alphanumeric characters is allowed between the letters of each
trigger so that ``h t.t-p s://`` and ``d.i.s.c.o.r.d.gg`` still match.
"""

import re
from dataclasses import dataclass

from rconctl.core.status import component_text
from rconctl.models.status import PlayerEntry

DEFAULT_PLACEHOLDER = "REDACTED"

TAG_NAMES = (
    "color",
    "c",
    "yellow",
    "dark_blue",
    "dark_purple",
    "gold",
    "red",
    "aqua",
    "gray",
    "light_purple",
    "white",
    "dark_gray",
    "green",
    "dark_green",
    "blue",
    "dark_aqua",
    "black",
    "gradient",
    "gr",
    "rainbow",
    "rb",
    "reset",
)

TAG_PATTERN = re.compile(rf"</?(?:{'|'.join(TAG_NAMES)})(?::[^>]*)?>")

_NOISE = r"[\W_]*"


def _spaced(literal: str) -> str:
    """Build a pattern matching literal with noise between its characters."""
    return _NOISE.join(re.escape(ch) for ch in literal)


POLICY_PATTERN = re.compile(
    "|".join(
        [
            _spaced("```"),
            _NOISE.join(["h", "t", "t", "p", "s?", ":", "/", "/"]),
            _spaced("discord.gg"),
        ]
    )
)


def strip_tags(nickname: str) -> str:
    """Remove formatting tags from a nickname."""
    return TAG_PATTERN.sub("", nickname)


def violates_policy(text: str) -> bool:
    """Return True if text contains a code fence, a link or an invite."""
    return POLICY_PATTERN.search(text) is not None


@dataclass(frozen=True, slots=True)
class ModerationResult:
    """Outcome of checking one nickname.

    Attributes:
        display: Text to show in place of the nickname.
        violator: Whether enforcement should run for this player.
    """

    display: str
    violator: bool = False


class ModerationFilter:
    """Decide how nicknames are displayed and who gets enforced against."""

    def __init__(self, placeholder: str = DEFAULT_PLACEHOLDER) -> None:
        self._placeholder = placeholder

    @property
    def placeholder(self) -> str:
        """Return the replacement text for rejected nicknames."""
        return self._placeholder

    def check(self, nickname: str) -> ModerationResult:
        """Check one raw nickname."""
        stripped = strip_tags(nickname)
        if violates_policy(stripped):
            return ModerationResult(self._placeholder, violator=True)
        return ModerationResult(stripped)

    def display_name(self, entry: PlayerEntry) -> tuple[str, bool]:
        """Return the rendered list line for a player and its violator flag.

        The raw nickname is preferred. Without one, the plain text of the
        styled nickname is checked instead.
        """
        nickname = entry.nickname
        if nickname is None:
            nickname = component_text(entry.nickname_styled)
        if not nickname:
            return entry.name, False
        result = self.check(nickname)
        return f"{entry.name} ({result.display})", result.violator
