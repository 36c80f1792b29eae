"""
Ahnentafel (pedigree) numbering.

The root is 1, the father of person n is 2n and the mother is 2n + 1.
Generation and lineage side follow from the index alone.
"""

from __future__ import annotations

from pedigree_layout.models import Side

ROOT_INDEX = 1


def _check(index: int) -> None:
    if not isinstance(index, int) or isinstance(index, bool) or index < ROOT_INDEX:
        raise ValueError(f"Ahnentafel index must be a positive integer, got {index!r}.")


def father_index(index: int) -> int:
    _check(index)
    return index * 2


def mother_index(index: int) -> int:
    _check(index)
    return index * 2 + 1


def child_index(index: int) -> int:
    """Index of the person this ancestor was reached from."""
    _check(index)
    if index == ROOT_INDEX:
        raise ValueError("The root has no child in its own pedigree.")
    return index // 2


def generation_of(index: int) -> int:
    """floor(log2(index)): 0 for the root, 1 for parents, 2 for grandparents."""
    _check(index)
    return index.bit_length() - 1


def is_father(index: int) -> bool:
    _check(index)
    return index > ROOT_INDEX and index % 2 == 0


def side_of(index: int) -> Side:
    """Lineage side: walk back to generation 1 and see whether it is 2 or 3."""
    _check(index)
    if index == ROOT_INDEX:
        return Side.ROOT
    n = index
    while n > 3:
        n //= 2
    return Side.PATERNAL if n == 2 else Side.MATERNAL

