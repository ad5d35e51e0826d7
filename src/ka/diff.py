"""Byte-level edit scripts.

:func:`diff` aligns two buffers with Myers' divide-and-conquer algorithm
(middle snake, common prefix/suffix trimming) and turns the alignment into
an ordered list of :class:`Inserted` / :class:`Deleted` operations.
:func:`apply` replays one operation against a mutable buffer.

Offsets in an edit script refer to the buffer *as it is being rebuilt*:
every operation is only valid against the state produced by the operations
before it, so scripts must be applied in order.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Iterator

__all__ = ["Inserted", "Deleted", "ContentChange", "DIFF_DEADLINE", "diff", "apply", "apply_all"]

# Seconds spent searching for a minimal alignment before falling back to a
# coarser one.
DIFF_DEADLINE = 0.1

# Search steps every region gets before the deadline is checked, and all it
# gets once the deadline has passed.
_FALLBACK_COST = 32

# First chunk size when comparing runs of bytes.
_CHUNK = 64


@dataclass(frozen=True, slots=True)
class Inserted:
    """Splice *new_content* into the buffer at offset *at*."""

    at: int
    new_content: bytes


@dataclass(frozen=True, slots=True)
class Deleted:
    """Remove the half-open byte range ``[at, upto)``."""

    at: int
    upto: int


ContentChange = Inserted | Deleted


def diff(old: bytes, new: bytes, *, deadline: float | None = DIFF_DEADLINE) -> list[ContentChange]:
    """Return the edit script turning *old* into *new*.

    Applying the result in order to a copy of *old* always yields *new*.
    When *deadline* (seconds) runs out the search settles for the best
    partial alignment it has found, and regions still unaligned after twice
    the deadline are replaced wholesale. The script gets longer but stays
    correct.
    ``deadline=None`` searches without a time limit.
    """
    if old == new:
        return []

    changes: list[ContentChange] = []
    at = 0
    for tag, old_len, new_start, new_end in _opcodes(old, new, deadline):
        if tag == "equal":
            at += old_len
        elif tag == "delete":
            changes.append(Deleted(at, at + old_len))
        elif tag == "insert":
            changes.append(Inserted(at, bytes(new[new_start:new_end])))
            at += new_end - new_start
        else:
            changes.append(Deleted(at, at + old_len))
            changes.append(Inserted(at, bytes(new[new_start:new_end])))
            at += new_end - new_start
    return changes


def apply(change: ContentChange, buffer: bytearray) -> None:
    """Apply one operation to *buffer* in place.

    Raises ValueError if the operation's offsets fall outside *buffer*.
    """
    size = len(buffer)
    if isinstance(change, Deleted):
        if not 0 <= change.at <= change.upto <= size:
            raise ValueError(
                f"Deletion [{change.at}, {change.upto}) out of range for {size} bytes")
        del buffer[change.at:change.upto]
    elif isinstance(change, Inserted):
        if not 0 <= change.at <= size:
            raise ValueError(f"Insertion at {change.at} out of range for {size} bytes")
        buffer[change.at:change.at] = change.new_content
    else:
        raise TypeError(f"Expected Inserted or Deleted, got {type(change).__name__}")


def apply_all(changes: Iterable[ContentChange], content: bytes = b"") -> bytes:
    """Apply *changes* in order to a copy of *content* and return the result."""
    buffer = bytearray(content)
    for change in changes:
        apply(change, buffer)
    return bytes(buffer)


# ---------------------------------------------------------------------------
# Alignment
# ---------------------------------------------------------------------------

def _opcodes(old: bytes, new: bytes, deadline: float | None) -> Iterator[tuple[str, int, int, int]]:
    """Yield ``(tag, old_len, new_start, new_end)`` with adjacent runs merged.

    Consecutive equal spans become one ``equal``; a run of deletions and
    insertions with no equal span between them becomes a ``replace``
    (or a plain ``delete`` / ``insert`` when only one side is present).
    """
    eq_len = 0
    del_len = 0
    ins_start = ins_end = -1

    def flush_edit():
        if del_len and ins_start >= 0:
            return ("replace", del_len, ins_start, ins_end)
        if del_len:
            return ("delete", del_len, 0, 0)
        if ins_start >= 0:
            return ("insert", 0, ins_start, ins_end)
        return None

    for tag, o0, o1, n0, n1 in _spans(old, new, deadline):
        if tag == "equal":
            op = flush_edit()
            if op is not None:
                yield op
                del_len = 0
                ins_start = ins_end = -1
            eq_len += o1 - o0
            continue
        if eq_len:
            yield ("equal", eq_len, 0, 0)
            eq_len = 0
        if tag == "delete":
            del_len += o1 - o0
        else:
            if ins_start < 0:
                ins_start = n0
            ins_end = n1

    if eq_len:
        yield ("equal", eq_len, 0, 0)
    op = flush_edit()
    if op is not None:
        yield op


def _spans(old: bytes, new: bytes, deadline: float | None) -> Iterator[tuple[str, int, int, int, int]]:
    """Yield raw ``(tag, old_start, old_end, new_start, new_end)`` spans in order.

    Recursion is driven by an explicit stack so deep alignments cannot hit
    the interpreter's recursion limit.

    Until *deadline* passes every region gets a full search. After that each
    search is cut short at :data:`_FALLBACK_COST` steps and split at the
    furthest point it reached, and once twice the deadline has passed the
    regions still left are replaced wholesale.
    """
    if deadline is None:
        stop = give_up = None
    else:
        now = time.monotonic()
        stop = now + deadline
        give_up = now + 2 * deadline
    expired = False

    max_d = (len(old) + len(new) + 1) // 2 + 1
    vf = [0] * (2 * max_d + 1)
    vb = [0] * (2 * max_d + 1)

    # None tags are regions still to align; everything else is ready to emit.
    stack: list[tuple[str | None, int, int, int, int]] = [(None, 0, len(old), 0, len(new))]
    while stack:
        tag, o0, o1, n0, n1 = stack.pop()
        if tag is not None:
            yield tag, o0, o1, n0, n1
            continue

        prefix = _common_prefix(old, o0, o1, new, n0, n1)
        if prefix:
            yield "equal", o0, o0 + prefix, n0, n0 + prefix
            o0 += prefix
            n0 += prefix

        suffix = _common_suffix(old, o0, o1, new, n0, n1)
        if suffix:
            stack.append(("equal", o1 - suffix, o1, n1 - suffix, n1))
            o1 -= suffix
            n1 -= suffix

        if o0 == o1 and n0 == n1:
            continue
        if n0 == n1:
            yield "delete", o0, o1, n0, n0
        elif o0 == o1:
            yield "insert", o0, o0, n0, n1
        else:
            snake = None
            if give_up is None or time.monotonic() <= give_up:
                snake = _middle_snake(old, o0, o1, new, n0, n1, vf, vb, max_d, stop, expired)
            if snake is None:
                yield "delete", o0, o1, n0, n0
                yield "insert", o1, o1, n0, n1
            else:
                x, y, exact = snake
                if not exact:
                    expired = True
                stack.append((None, x, o1, y, n1))
                stack.append((None, o0, x, n0, y))


def _middle_snake(old, o0, o1, new, n0, n1, vf, vb, off, stop, expired):
    """Find the split point of an optimal path through the edit graph.

    Returns absolute ``(old_index, new_index, exact)``. ``exact`` is False
    when the search was cut short (past *stop*, or at the step limit once
    *expired*) and the point is only the furthest one reached. None means no
    usable split was found. *vf* / *vb* are scratch diagonals indexed ``off + k``.
    """
    n = o1 - o0
    m = n1 - n0
    delta = n - m
    odd = delta & 1 == 1

    vf[off + 1] = 0
    vb[off + 1] = 0

    d_max = (n + m + 1) // 2 + 1
    for d in range(d_max):
        if d >= _FALLBACK_COST and (
                expired or (stop is not None and time.monotonic() > stop)):
            return _furthest_split(o0, n0, n, m, d - 1, vf, vb, off)

        # Forward
        for k in range(d, -d - 1, -2):
            if k == -d or (k != d and vf[off + k - 1] < vf[off + k + 1]):
                x = vf[off + k + 1]
            else:
                x = vf[off + k - 1] + 1
            y = x - k
            x0, y0 = x, y
            if x < n and y < m:
                x += _common_prefix(old, o0 + x, o1, new, n0 + y, n1)
            vf[off + k] = x
            if odd and abs(k - delta) <= d - 1:
                if vf[off + k] + vb[off - (k - delta)] >= n:
                    return o0 + x0, n0 + y0, True

        # Backward
        for k in range(d, -d - 1, -2):
            if k == -d or (k != d and vb[off + k - 1] < vb[off + k + 1]):
                x = vb[off + k + 1]
            else:
                x = vb[off + k - 1] + 1
            y = x - k
            if x < n and y < m:
                advance = _common_suffix(old, o0, o1 - x, new, n0, n1 - y)
                x += advance
                y += advance
            vb[off + k] = x
            if not odd and abs(k - delta) <= d:
                if vb[off + k] + vf[off - (k - delta)] >= n:
                    return o0 + n - x, n0 + m - y, True

    return None


def _furthest_split(o0, n0, n, m, d, vf, vb, off):
    """Split at the point furthest from its corner after *d* steps each way.

    Forward points are measured from the region's start, backward ones from
    its end. The corners themselves are never returned, so both halves of
    the split are smaller than the region.
    """
    best = None
    reach = 0
    for k in range(-d, d + 1, 2):
        x = vf[off + k]
        y = x - k
        if 0 <= x <= n and 0 <= y <= m and x + y > reach and x + y < n + m:
            best, reach = (x, y), x + y
        x = vb[off + k]
        y = x - k
        if 0 <= x <= n and 0 <= y <= m and x + y > reach and x + y < n + m:
            best, reach = (n - x, m - y), x + y
    if best is None:
        return None
    return o0 + best[0], n0 + best[1], False


def _common_prefix(a: bytes, a0: int, a1: int, b: bytes, b0: int, b1: int) -> int:
    """Length of the common prefix of ``a[a0:a1]`` and ``b[b0:b1]``.

    Chunks double in size until one differs, then halve until the first
    differing byte is found, so the cost follows the length of the match
    rather than the length of the ranges.
    """
    limit = min(a1 - a0, b1 - b0)
    if limit <= 0 or a[a0] != b[b0]:
        return 0
    i = 0
    step = _CHUNK
    growing = True
    while i < limit and step:
        size = min(step, limit - i)
        if a[a0 + i:a0 + i + size] == b[b0 + i:b0 + i + size]:
            i += size
            if growing:
                step *= 2
        else:
            growing = False
            step = size // 2
    return i


def _common_suffix(a: bytes, a0: int, a1: int, b: bytes, b0: int, b1: int) -> int:
    """Length of the common suffix of ``a[a0:a1]`` and ``b[b0:b1]``."""
    limit = min(a1 - a0, b1 - b0)
    if limit <= 0 or a[a1 - 1] != b[b1 - 1]:
        return 0
    i = 0
    step = _CHUNK
    growing = True
    while i < limit and step:
        size = min(step, limit - i)
        if a[a1 - i - size:a1 - i] == b[b1 - i - size:b1 - i]:
            i += size
            if growing:
                step *= 2
        else:
            growing = False
            step = size // 2
    return i
