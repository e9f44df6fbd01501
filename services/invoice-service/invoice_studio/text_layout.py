from typing import Callable, List

Measure = Callable[[str], float]


def wrap_text(text: str, width: float, measure: Measure) -> List[str]:
    """Greedy word wrap that keeps embedded line breaks.

    Words wider than ``width`` are split by character. Always returns at least one line.
    """
    lines: List[str] = []
    for paragraph in (text or "").splitlines() or [""]:
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            if measure(candidate) <= width:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = ""
            while word and measure(word) > width:
                cut = _fit_prefix(word, width, measure)
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines


def _fit_prefix(word: str, width: float, measure: Measure) -> int:
    cut = 1
    while cut < len(word) and measure(word[: cut + 1]) <= width:
        cut += 1
    return cut


def truncate_lines(lines: List[str], max_lines: int) -> List[str]:
    if len(lines) <= max_lines:
        return lines
    kept = lines[: max(max_lines, 1)]
    kept[-1] = kept[-1].rstrip() + "..."
    return kept
