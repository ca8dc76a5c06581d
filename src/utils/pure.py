from typing import Iterable, List, Literal, Optional, Tuple

from db.models import CartItem


def cart_totals(items: Iterable[CartItem]) -> Tuple[int, float]:
    """
    Derive (total_items, total_price) from cart items.

    total_items is the sum of quantities, total_price the sum of
    unit_price * quantity. Both are 0 for an empty cart.
    """
    total_items = 0
    total_price = 0.0
    for item in items:
        total_items += item.quantity
        total_price += item.unit_price * item.quantity
    return total_items, total_price


def format_price(amount: Optional[float]) -> str:
    if amount is None:
        return "-"
    return f"${amount:,.2f}"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [list(map(str, row)) for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])
