# src/nlmorph/topology.py
from __future__ import annotations

# General imports (stdlib)
from typing import List

# Local imports
from .model import Branch, NeuronData


def collapse(branch: Branch) -> Branch:
    """
    Remove degree-2 nodes below (and including) `branch`.

    Use:
        While a branch has exactly one child, splice that child into it:
        its points and markers are appended in order, and its children
        replace the branch's child list. Then continue into every surviving
        child. Works in place with an explicit stack.

        Afterwards every branch has 0 or >= 2 children. Point and marker
        totals are unchanged, and a second call is a no-op.

    Args:
        branch (Branch): Root of the subtree to simplify (a Tree works too).

    Returns:
        Branch: The same `branch`, for chaining.
    """
    stack: List[Branch] = [branch]
    while stack:
        b = stack.pop()

        # Splice single children until this branch is a leaf or a real fork
        while len(b.branches) == 1:
            only = b.branches[0]
            b.points.extend(only.points)
            b.markers.extend(only.markers)
            b.branches = only.branches

        stack.extend(b.branches)
    return branch


def simplify(data: NeuronData) -> NeuronData:
    """
    Collapse degree-2 nodes below the root of every tree in `data` (in place).

    Each child branch of a tree root is collapsed on its own; the root keeps
    its points and child list even when it has a single child branch.
    Contours and file-level markers are untouched.
    """
    for t in data.trees:
        for b in t.branches:
            collapse(b)
    return data


def degree2_count(branch: Branch) -> int:
    """Number of branches in the subtree that have exactly one child."""
    n = 0
    stack: List[Branch] = [branch]
    while stack:
        b = stack.pop()
        if len(b.branches) == 1:
            n += 1
        stack.extend(b.branches)
    return n
