"""Generic "first match wins" evaluation over ordered rule lists."""
from typing import Callable, Iterable, Optional, TypeVar

R = TypeVar("R")


def first_match(rules: Iterable[R], predicate: Callable[[R], bool]) -> Optional[R]:
    """
    Return the first rule for which predicate holds.

    Args:
        rules: Ordered rules (regex tables, keyword tables, decision rows)
        predicate: Test applied to each rule in order

    Returns:
        The first matching rule, or None when nothing matches
    """
    for rule in rules:
        if predicate(rule):
            return rule
    return None
