"""Plain-text frame composition helpers.

Every component renders to a list of lines; these helpers pad, clip, frame
and join such blocks. Widths are measured in characters.
"""
from typing import List, Sequence

LIGHT = ("┌", "┐", "└", "┘", "─", "│")
HEAVY = ("┏", "┓", "┗", "┛", "━", "┃")


def fit_line(text: str, width: int) -> str:
    if width <= 0:
        return ""
    return text[:width].ljust(width)


def fit_block(lines: Sequence[str], width: int, height: int) -> List[str]:
    out = [fit_line(line, width) for line in list(lines)[:max(0, height)]]
    while len(out) < height:
        out.append(" " * max(0, width))
    return out


def box(lines: Sequence[str], width: int, height: int, title: str = "", focused: bool = False) -> List[str]:
    """Frame `lines` in a border of exactly width x height characters."""
    if width < 2 or height < 2:
        return fit_block(lines, width, height)
    tl, tr, bl, br, h, v = HEAVY if focused else LIGHT
    inner_w = width - 2
    label = f" {title} " if title else ""
    top = tl + (label + h * inner_w)[:inner_w] + tr
    body = [v + line + v for line in fit_block(lines, inner_w, height - 2)]
    bottom = bl + h * inner_w + br
    return [top] + body + [bottom]


def hjoin(left: Sequence[str], right: Sequence[str]) -> List[str]:
    height = max(len(left), len(right))
    lw = max((len(line) for line in left), default=0)
    rw = max((len(line) for line in right), default=0)
    left = fit_block(left, lw, height)
    right = fit_block(right, rw, height)
    return [a + b for a, b in zip(left, right)]


def center(lines: Sequence[str], width: int, height: int) -> List[str]:
    """Place a block in the middle of a blank width x height area."""
    block_w = max((len(line) for line in lines), default=0)
    top = max(0, (height - len(lines)) // 2)
    pad = " " * max(0, (width - block_w) // 2)
    out = [""] * top + [pad + line for line in lines]
    return fit_block(out, width, height)
