from nlmorph.geometry import Color, Point
from nlmorph.model import Branch, Marker, NeuronData, Tree, count_markers, iter_branches
from nlmorph.topology import collapse, degree2_count, simplify


def _p(x):
    return Point(float(x), 0.0, 0.0, 1.0)


def _m(name):
    return Marker("Dot", name, Color(1.0, 0.0, 0.0), False, [_p(0)])


def _chain_with_fork():
    """a -> b -> c, where c forks into d and (e -> f)."""
    f = Branch(points=[_p(9)], markers=[_m("f")])
    e = Branch(points=[_p(7), _p(8)], branches=[f])
    d = Branch(points=[_p(6)])
    c = Branch(points=[_p(4), _p(5)], markers=[_m("c")], branches=[d, e])
    b = Branch(points=[_p(2), _p(3)], branches=[c])
    a = Branch(points=[_p(0), _p(1)], markers=[_m("a")], branches=[b])
    return a


def _n_points(b):
    return sum(len(x.points) for x in iter_branches(b))


def test_collapse_splices_single_children():
    a = collapse(_chain_with_fork())

    assert [p.x for p in a.points] == [0, 1, 2, 3, 4, 5]
    assert [m.name for m in a.markers] == ["a", "c"]
    assert len(a.branches) == 2

    d, e = a.branches
    assert [p.x for p in d.points] == [6]
    assert [p.x for p in e.points] == [7, 8, 9]
    assert [m.name for m in e.markers] == ["f"]
    assert e.branches == []


def test_collapse_postcondition_and_counts():
    a = _chain_with_fork()
    n_points, n_markers = _n_points(a), count_markers(a)
    assert degree2_count(a) == 3

    collapse(a)

    assert degree2_count(a) == 0
    assert all(len(b.branches) != 1 for b in iter_branches(a))
    assert _n_points(a) == n_points
    assert count_markers(a) == n_markers


def test_collapse_is_idempotent():
    once = collapse(_chain_with_fork())
    twice = collapse(_chain_with_fork())
    collapse(twice)
    assert once == twice


def test_collapse_leaves_real_forks_alone(fork_tree):
    before = Tree(
        leaf=fork_tree.leaf,
        color=fork_tree.color,
        type=fork_tree.type,
        points=list(fork_tree.points),
        branches=list(fork_tree.branches),
    )
    assert collapse(fork_tree) == before


def test_collapse_deep_chain():
    depth = 5000
    root = Branch(points=[_p(0)])
    b = root
    for i in range(1, depth):
        child = Branch(points=[_p(i)])
        b.branches.append(child)
        b = child

    collapse(root)

    assert root.branches == []
    assert len(root.points) == depth


def test_simplify_collapses_every_tree():
    t1 = Tree(points=[_p(0)], branches=[Branch(points=[_p(1)], branches=[Branch(points=[_p(2)])])])
    t2 = Tree(points=[_p(10)], branches=[Branch(points=[_p(11)]), Branch(points=[_p(12)])])
    data = simplify(NeuronData(trees=[t1, t2]))

    assert [p.x for p in data.trees[0].points] == [0]
    assert len(data.trees[0].branches) == 1
    assert [p.x for p in data.trees[0].branches[0].points] == [1, 2]
    assert data.trees[0].branches[0].branches == []
    assert len(data.trees[1].branches) == 2


def test_simplify_keeps_root_separate_from_single_child():
    child = Branch(
        leaf="Midpoint",
        points=[_p(1)],
        branches=[Branch(points=[_p(2)]), Branch(points=[_p(3)])],
    )
    tree = Tree(points=[_p(0)], branches=[child])

    simplify(NeuronData(trees=[tree]))

    assert [p.x for p in tree.points] == [0]
    assert tree.branches == [child]
    assert child.leaf == "Midpoint"
    assert len(child.branches) == 2
