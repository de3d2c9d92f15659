"""
Rupee Formatting

Amounts are shown the way Indian users read them: lakh/crore digit
grouping (12,34,567) with at most two decimals.
"""


def group_indian(integer_part: str) -> str:
    """Insert lakh/crore separators into a string of digits."""
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_number(value: float, decimals: int = 2) -> str:
    """
    12345678.5 -> "1,23,45,678.5"

    Trailing zeros in the fraction are dropped.
    """
    negative = value < 0
    text = f"{abs(value):.{decimals}f}"
    integer_part, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    result = group_indian(integer_part)
    if fraction:
        result = f"{result}.{fraction}"
    return f"-{result}" if negative else result


def format_inr(value: float, decimals: int = 2) -> str:
    """Format an amount with the rupee sign."""
    return f"₹{format_number(value, decimals)}"
