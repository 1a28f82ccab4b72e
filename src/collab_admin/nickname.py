from __future__ import annotations

import re

MAX_NICKNAME_LENGTH = 40

_DISALLOWED = re.compile(r"[^a-z0-9]")


class InvalidNicknameError(ValueError):
    """Raised when a display name has no characters usable in a mail nickname."""


def sanitize(name: str) -> str:
    """Derive a group ``mailNickname`` from a display name.

    Lower-cases, keeps only ``[a-z0-9]`` and truncates to 40 characters.
    """
    nickname = _DISALLOWED.sub("", (name or "").lower())[:MAX_NICKNAME_LENGTH]
    if not nickname:
        raise InvalidNicknameError(f"Name {name!r} does not contain any letters or digits")
    return nickname
