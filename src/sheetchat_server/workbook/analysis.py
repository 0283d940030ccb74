"""Descriptive analysis of range values for the analyze_selection capability."""

import statistics
from collections import Counter
from typing import Any

from sheetchat_server.workbook.host import HostError


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return None
    return None


def _fmt(value: float) -> str:
    return f"{value:.4g}"


def _summary(numbers: list[float], cells: list[Any]) -> str:
    lines = [
        f"- Cells: {len(cells)} ({len(numbers)} numeric)",
    ]
    if numbers:
        lines += [
            f"- Sum: {_fmt(sum(numbers))}",
            f"- Mean: {_fmt(statistics.fmean(numbers))}",
            f"- Min: {_fmt(min(numbers))}",
            f"- Max: {_fmt(max(numbers))}",
        ]
    return "\n".join(lines)


def _trend(numbers: list[float]) -> str:
    if len(numbers) < 2:
        return "- Not enough numeric values to determine a trend"

    first, last = numbers[0], numbers[-1]
    change = last - first
    if change > 0:
        direction = "increasing"
    elif change < 0:
        direction = "decreasing"
    else:
        direction = "flat"

    lines = [
        f"- Direction: {direction}",
        f"- Change: {_fmt(change)} (from {_fmt(first)} to {_fmt(last)})",
    ]
    if first != 0:
        lines.append(f"- Relative change: {change / abs(first) * 100:.1f}%")

    slope = statistics.linear_regression(range(len(numbers)), numbers).slope
    lines.append(f"- Average change per step: {_fmt(slope)}")
    return "\n".join(lines)


def _distribution(numbers: list[float], cells: list[Any]) -> str:
    if len(numbers) >= 2:
        q1, q2, q3 = statistics.quantiles(numbers, n=4)
        return "\n".join(
            [
                f"- Median: {_fmt(q2)}",
                f"- Quartiles: Q1={_fmt(q1)}, Q3={_fmt(q3)}",
                f"- Standard deviation: {_fmt(statistics.stdev(numbers))}",
                f"- Range: {_fmt(min(numbers))} to {_fmt(max(numbers))}",
            ]
        )

    counts = Counter(str(cell) for cell in cells)
    top = ", ".join(f"{value} ({count})" for value, count in counts.most_common(5))
    return f"- Most frequent values: {top}"


def analyze_values(values: list[list[Any]], analysis_type: str) -> str:
    """Describe a block of values.

    Args:
        values: Row-major cell values; blanks are ignored
        analysis_type: One of "summary", "trend", "distribution"

    Returns:
        Markdown bullet list describing the data

    Raises:
        HostError: If the range is empty or the analysis type is unknown
    """
    cells = [cell for row in values for cell in row if cell not in (None, "")]
    if not cells:
        raise HostError("The selected range contains no data")

    numbers = [n for n in (_as_number(cell) for cell in cells) if n is not None]

    if analysis_type == "summary":
        return _summary(numbers, cells)
    if analysis_type == "trend":
        return _trend(numbers)
    if analysis_type == "distribution":
        return _distribution(numbers, cells)
    raise HostError(f"Unknown analysis type: {analysis_type}")
