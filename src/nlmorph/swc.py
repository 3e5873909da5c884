# src/nlmorph/swc.py
from __future__ import annotations

# General imports (stdlib)
import io
import logging
import os
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, TextIO, Tuple, Union

# Third-party imports
import pandas as pd

# Local imports
from .exceptions import FormatError, StructuralError
from .geometry import WHITE, Point
from .model import Branch, NeuronData, Tree

logger = logging.getLogger(__name__)

# SWC type codes (http://research.mssm.edu/cnic/swc.html)
UNDEFINED = 0
SOMA = 1
AXON = 2
DENDRITE = 3
APICAL_DENDRITE = 4
FORK = 5
END = 6
CUSTOM = 7

NO_PARENT = -1

COLUMNS = ["ID", "Type", "X", "Y", "Z", "Radius", "Parent"]
_OVERFLOW = "_overflow"

DANGLING_POLICIES = ("error", "root")


@dataclass(frozen=True)
class SWCRecord:
    """One line of an SWC file: `id type x y z radius parent`."""
    id: int
    type: int
    x: float
    y: float
    z: float
    radius: float
    parent: int

    def point(self) -> Point:
        return Point(self.x, self.y, self.z, self.radius)


# ---------------------
# --- Text <-> rows ---
# ---------------------

def read_table(source: Union[str, os.PathLike, TextIO]) -> pd.DataFrame:
    """
    Read SWC rows into a DataFrame with the standard seven columns.

    Use:
        Whitespace-separated values, '#' comments and blank lines ignored.
        Values are left as parsed; `records_from_frame` does the validation.
        An overflow column catches rows with more than seven fields so they
        are rejected instead of silently cut down.

    Args:
        source: Path or open text buffer.

    Returns:
        pd.DataFrame: Columns ID, Type, X, Y, Z, Radius, Parent (possibly empty).

    Raises:
        FormatError: If the text cannot be tokenized into rows, or a row has
            more than seven fields.
    """
    try:
        df = pd.read_csv(
            source,
            sep=r"\s+",
            comment="#",
            names=COLUMNS + [_OVERFLOW],
            header=None,
            engine="python",
            index_col=False,
            dtype=str,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=COLUMNS)
    except pd.errors.ParserError as e:
        raise FormatError(f"Unreadable SWC rows: {e}") from e

    # Rows with an eighth field are never valid SWC
    extra = df[_OVERFLOW].notna()
    if extra.any():
        bad_rows = df.index[extra].to_list()[:10]
        raise FormatError(
            f"SWC rows have more than {len(COLUMNS)} fields. First bad record indices: {bad_rows}"
        )
    return df.drop(columns=_OVERFLOW)


def records_from_frame(df: pd.DataFrame) -> List[SWCRecord]:
    """
    Validate an SWC DataFrame and convert it into records.

    Use:
        Coerce ID/Type/Parent to integers (accepting integer-valued floats
        such as "3.0") and X/Y/Z/Radius to floats. Any missing or non-numeric
        value aborts the conversion; no partial list is returned.

    Args:
        df (pd.DataFrame): Table as produced by `read_table`.

    Returns:
        List[SWCRecord]: One record per row, in file order.

    Raises:
        FormatError: If a field is missing, non-numeric, or (for integer
            columns) not integer-valued.
    """
    missing = [c for c in COLUMNS if c not in df.columns]
    if missing:
        raise FormatError(f"Missing required SWC columns: {missing}")

    if df.empty:
        return []

    cols: Dict[str, pd.Series] = {}

    # Coerce and check every column; rows with too few fields show up as NaN here
    for col in COLUMNS:
        s = pd.to_numeric(df[col], errors="coerce")
        bad_mask = s.isna()
        if bad_mask.any():
            bad_rows = df.index[bad_mask].to_list()[:10]
            raise FormatError(
                f"SWC column '{col}' contains missing or non-numeric values. "
                f"First bad record indices: {bad_rows}"
            )
        cols[col] = s

    # Ensure integer-like columns hold whole numbers
    for col in ("ID", "Type", "Parent"):
        s = cols[col]
        non_int_mask = (s % 1).abs().gt(0)
        if non_int_mask.any():
            bad_rows = df.index[non_int_mask].to_list()[:10]
            bad_vals = s[non_int_mask].iloc[:10].to_list()
            raise FormatError(
                f"SWC column '{col}' contains non-integer values. "
                f"First bad records/values: {list(zip(bad_rows, bad_vals))}"
            )
        cols[col] = s.astype("int64")

    return [
        SWCRecord(int(i), int(t), float(x), float(y), float(z), float(r), int(p))
        for i, t, x, y, z, r, p in zip(*(cols[c].to_list() for c in COLUMNS))
    ]


def parse_records(text: str) -> List[SWCRecord]:
    """Parse SWC text into records (see `read_table` and `records_from_frame`)."""
    return records_from_frame(read_table(io.StringIO(text)))


def format_records(records: Iterable[SWCRecord], header: Optional[Sequence[str]] = None) -> str:
    """
    Format records as SWC text.

    Args:
        records (Iterable[SWCRecord]): Records in output order.
        header (Optional[Sequence[str]]): Comment lines written first, each
            prefixed with "# ".

    Returns:
        str: SWC text, one record per line, newline-terminated.
    """
    lines = [f"# {h}" for h in (header or ())]
    for r in records:
        lines.append(
            f"{r.id} {r.type} {r.x!r} {r.y!r} {r.z!r} {r.radius!r} {r.parent}"
        )
    return "\n".join(lines) + "\n" if lines else ""


# ----------------------
# --- Reconstruction ---
# ----------------------

def _starts_tree(r: SWCRecord) -> bool:
    return r.parent == NO_PARENT or r.type == SOMA


def reconstruct(
    records: Sequence[SWCRecord],
    dangling: str = "error",
    tree_type: str = "Axon",
) -> NeuronData:
    """
    Rebuild hierarchical trees from flat parent-pointer records.

    Use:
        1) Index children by parent id, each list ordered by ascending id.
        2) Every record with parent -1 (or type soma) starts a new Tree.
        3) Grow a branch along its single-child chain. At a record with two
           or more children the branch ends on that fork point and one new
           "Normal" branch is spawned per child, in ascending id order.
           A record without children ends its branch.

        The type codes of non-root records are not consulted, so files that
        mislabel forks or ends still reconstruct from their parent links.
        The child index is a transient structure; no parent pointer is kept
        on the resulting model.

    Args:
        records (Sequence[SWCRecord]): Records in any order.
        dangling (str): What to do with a record whose parent id is not in
            the file: "error" raises, "root" starts a new tree at it.
        tree_type (str): Neurite type assigned to every reconstructed Tree.

    Returns:
        NeuronData: One Tree per root, in ascending root id order.

    Raises:
        StructuralError: On duplicate ids, dangling parents (policy "error"),
            or records unreachable from any root (cyclic parentage).
        ValueError: If `dangling` is not a known policy.
    """
    if dangling not in DANGLING_POLICIES:
        raise ValueError(f"Unknown dangling-parent policy {dangling!r}; expected one of {DANGLING_POLICIES}")

    # Reject duplicate ids before any linking
    ids = set()
    for r in records:
        if r.id in ids:
            raise StructuralError(f"Duplicate SWC id {r.id}")
        ids.add(r.id)

    # Build parent -> children (ascending ids) and collect roots
    roots: List[SWCRecord] = []
    children: Dict[int, List[SWCRecord]] = defaultdict(list)
    dangling_ids: List[int] = []
    for r in sorted(records, key=lambda rec: rec.id):
        if _starts_tree(r):
            roots.append(r)
        elif r.parent not in ids:
            if dangling == "error":
                raise StructuralError(
                    f"SWC record {r.id} references missing parent {r.parent}"
                )
            dangling_ids.append(r.id)
            roots.append(r)
        else:
            children[r.parent].append(r)

    if dangling_ids:
        logger.warning(
            "Treating %d record(s) with missing parents as new roots: %s",
            len(dangling_ids), dangling_ids[:10],
        )

    # Grow every tree with an explicit stack of (start record, branch to fill)
    data = NeuronData()
    n_visited = 0
    for root in roots:
        tree = Tree(leaf="Normal", color=WHITE, type=tree_type)
        stack: List[Tuple[SWCRecord, Branch]] = [(root, tree)]
        while stack:
            rec, branch = stack.pop()
            while True:
                branch.points.append(rec.point())
                n_visited += 1
                kids = children.get(rec.id, ())

                # Single child: not a real fork, keep extending this branch
                if len(kids) == 1:
                    rec = kids[0]
                    continue

                # Fork: one new branch per child, this branch ends here
                if kids:
                    spawned = [(k, Branch(leaf="Normal")) for k in kids]
                    branch.branches.extend(b for _, b in spawned)
                    stack.extend(reversed(spawned))
                break
        data.trees.append(tree)

    # Records never reached from a root can only sit on a parent cycle
    if n_visited != len(records):
        unreached = sorted(ids - _reachable_ids(roots, children))
        raise StructuralError(
            f"SWC records unreachable from any root (cyclic parentage): {unreached[:10]}"
        )

    return data


def _reachable_ids(roots: List[SWCRecord], children: Dict[int, List[SWCRecord]]) -> set:
    seen = set()
    stack = list(roots)
    while stack:
        r = stack.pop()
        seen.add(r.id)
        stack.extend(children.get(r.id, ()))
    return seen


# ------------------
# --- Flattening ---
# ------------------

def flatten(data: NeuronData) -> List[SWCRecord]:
    """
    Flatten all trees into SWC records.

    Use:
        Depth-first pre-order over each tree, numbering points from 1
        across the whole file. A fork's children are written one complete
        subtree at a time, in stored order. Type codes:
          - first point of a tree: soma (1), parent -1
          - last point of a branch with children: fork (5)
          - last point of a branch without children: end (6)
          - any other point: undefined (0)
        Each point's parent is the previous point on its branch, or the fork
        point of the parent branch for a branch's first point. Branches with
        no points pass their parent through to their own children.

    Args:
        data (NeuronData): Model to flatten. Contours and markers have no SWC
            representation and are ignored.

    Returns:
        List[SWCRecord]: Records in id order.
    """
    records: List[SWCRecord] = []
    next_id = 1

    for tree in data.trees:
        # (branch, parent id of its first point, still at the tree's first point)
        stack: List[Tuple[Branch, int, bool]] = [(tree, NO_PARENT, True)]
        while stack:
            b, parent, at_root = stack.pop()
            n = len(b.points)
            for i, p in enumerate(b.points):
                if at_root and i == 0:
                    code = SOMA
                elif i == n - 1:
                    code = FORK if b.branches else END
                else:
                    code = UNDEFINED
                records.append(SWCRecord(next_id, code, p.x, p.y, p.z, p.d, parent))
                parent = next_id
                next_id += 1

            # Reverse so the first child's subtree is written first
            for child in reversed(b.branches):
                stack.append((child, parent, at_root and n == 0))

    return records
