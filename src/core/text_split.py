"""Length-limited text splitting for per-message channels."""

from __future__ import annotations

from typing import List, Tuple

from core.config import CAPTION_MAX_CHARS, MESSAGE_MAX_CHARS


def _back_off_escape(text: str, start: int, end: int) -> int:
    # An odd run of backslashes before the cut means the last one escapes text[end].
    backslashes = 0
    while end - backslashes - 1 >= start and text[end - backslashes - 1] == "\\":
        backslashes += 1
    if backslashes % 2 and end - 1 > start:
        return end - 1
    return end


def split_text(text: str, max_len: int) -> List[str]:
    """Split ``text`` into pieces of at most ``max_len`` characters.

    Each cut prefers the last newline inside the window, then the last
    space, then a hard cut at ``max_len``. A hard cut never leaves a lone
    escaping backslash at the end of a piece. The separator stays at the end
    of the earlier piece, so ``"".join(pieces) == text``.
    """

    if max_len < 1:
        raise ValueError(f"max_len must be positive, got {max_len}")

    if len(text) <= max_len:
        return [text]

    pieces: List[str] = []
    start = 0
    while start < len(text):
        end = start + max_len
        if end >= len(text):
            pieces.append(text[start:])
            break

        window = text[start:end]
        cut = window.rfind("\n")
        if cut == -1:
            cut = window.rfind(" ")
        if cut == -1:
            cut = _back_off_escape(text, start, end)
        else:
            cut = start + cut + 1

        pieces.append(text[start:cut])
        start = cut
    return pieces


def split_caption(
    text: str,
    caption_limit: int = CAPTION_MAX_CHARS,
    message_limit: int = MESSAGE_MAX_CHARS,
) -> Tuple[str, List[str]]:
    """Return ``(caption, follow_ups)`` for a photo message.

    The caption is the first piece that fits the caption limit; whatever is
    left is split again at the regular message limit.
    """

    caption = split_text(text, caption_limit)[0]
    remainder = text[len(caption):]
    if not remainder:
        return caption, []
    return caption, split_text(remainder, message_limit)
