"""Splitting strings against template-literal shapes.

A template is a sequence of text and holes. Text, and holes that stand for a
finite set of strings, are anchors. The other holes (inferred names, or
`${string}`-like holes) are un-anchored: their extent is decided by the
anchors around them.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence

from typecalc.errors import format_adjacent_holes_error


class Hole:
    def __init__(
        self,
        label: str,
        alternatives: Optional[Sequence[str]] = None,
        accepts: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self.label = label
        self.alternatives = (
            None if alternatives is None else tuple(alternatives)
        )
        self._accepts = accepts

    def is_anchored(self) -> bool:
        return self.alternatives is not None

    def accepts(self, piece: str) -> bool:
        return self._accepts is None or self._accepts(piece)

    def __repr__(self) -> str:
        return f'Hole({self.label!r}, alternatives={self.alternatives!r})'


class AmbiguousSplit(Exception):
    def __init__(self, first: Hole, second: Hole) -> None:
        super().__init__(format_adjacent_holes_error(first.label, second.label))


def split(
    segments: Sequence[str | Hole], subject: str, exhaustive: bool = False
) -> Optional[list[str]]:
    """Match `subject` against the template, returning one piece per hole.

    In the default mode an un-anchored hole ends at the first occurrence of
    the anchor that follows it (or at the end, when that anchor is the last
    segment), and two adjacent un-anchored holes raise `AmbiguousSplit`. With
    `exhaustive=True` every possible split is tried instead, which is what a
    yes/no assignability question needs.

    Returns None when there is no match."""
    return _split(_merge_text(segments), 0, subject, 0, exhaustive)


def _merge_text(segments: Sequence[str | Hole]) -> list[str | Hole]:
    merged: list[str | Hole] = []
    for segment in segments:
        if isinstance(segment, str):
            if not segment:
                continue
            if merged and isinstance(merged[-1], str):
                merged[-1] += segment
                continue
        merged.append(segment)
    return merged


def _split(
    segments: list[str | Hole],
    i: int,
    subject: str,
    position: int,
    exhaustive: bool,
) -> Optional[list[str]]:
    if i == len(segments):
        return [] if position == len(subject) else None
    segment = segments[i]
    is_last = i == len(segments) - 1
    if isinstance(segment, str):
        if is_last:
            return [] if subject[position:] == segment else None
        if not subject.startswith(segment, position):
            return None
        return _split(
            segments, i + 1, subject, position + len(segment), exhaustive
        )
    if segment.alternatives is not None:
        for alternative in segment.alternatives:
            if is_last:
                if subject[position:] == alternative:
                    return [alternative]
                continue
            if subject.startswith(alternative, position):
                rest = _split(
                    segments,
                    i + 1,
                    subject,
                    position + len(alternative),
                    exhaustive,
                )
                if rest is not None:
                    return [alternative, *rest]
        return None
    for end in _candidate_ends(segments, i, subject, position, exhaustive):
        piece = subject[position:end]
        if not segment.accepts(piece):
            continue
        rest = _split(segments, i + 1, subject, end, exhaustive)
        if rest is not None:
            return [piece, *rest]
    return None


def _candidate_ends(
    segments: list[str | Hole],
    i: int,
    subject: str,
    position: int,
    exhaustive: bool,
) -> Iterable[int]:
    if exhaustive:
        return range(position, len(subject) + 1)
    if i == len(segments) - 1:
        return [len(subject)]
    following = segments[i + 1]
    if isinstance(following, Hole) and not following.is_anchored():
        hole = segments[i]
        assert isinstance(hole, Hole)
        raise AmbiguousSplit(hole, following)
    if isinstance(following, str):
        texts: Sequence[str] = [following]
    else:
        assert following.alternatives is not None
        texts = following.alternatives
    if i + 1 == len(segments) - 1:
        # The final anchor has to sit at the very end of the subject.
        for text in texts:
            end = len(subject) - len(text)
            if end >= position and subject.endswith(text):
                return [end]
        return []
    found = [
        index for text in texts if (index := subject.find(text, position)) >= 0
    ]
    return [min(found)] if found else []
