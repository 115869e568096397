import json
import math

import pytest

from gcs2d import P2PAngle, PointOnLine, SketchFormatError, dump_points, load_sketch, load_sketch_file

RECTANGLE = {
    "points": {
        "A": [0, 0, True],
        "B": [3.7, 0.3],
        "C": {"x": 4.2, "y": 2.6},
        "D": [0.2, 3.3],
    },
    "lines": {"AB": ["A", "B"], "CD": ["C", "D"]},
    "constraints": [
        {"kind": "equal", "refs": ["A.y", "B.y"]},
        {"kind": "equal", "refs": ["B.x", "C.x"]},
        {"kind": "parallel", "refs": ["AB", "CD"], "tag": 2},
        {"kind": "equal", "refs": ["D.x", "A.x"]},
        {"kind": "p2p_distance", "refs": ["A", "B"], "target": 4},
        {"kind": "p2p_distance", "refs": ["B", "C"], "target": 3},
    ],
    "solver": {"algorithm": "lm"},
}


def test_load_and_solve_rectangle():
    sketch = load_sketch(RECTANGLE)

    assert sorted(sketch.points) == ["A", "B", "C", "D"]
    assert sketch.handles == [1, 2, 3, 4, 5, 6]
    assert sketch.system.config.algorithm == "lm"
    assert sketch.system.params.is_locked(sketch.points["A"].x_ref)
    assert sketch.system.constraint(3).tag == 2

    result = sketch.system.solve()
    coords = dump_points(sketch)

    assert result.converged
    assert coords["B"] == pytest.approx([4.0, 0.0], abs=1e-5)
    assert coords["C"] == pytest.approx([4.0, 3.0], abs=1e-5)
    assert coords["D"] == pytest.approx([0.0, 3.0], abs=1e-5)


def test_inline_lines_and_degrees():
    sketch = load_sketch(
        {
            "points": {"A": [0, 0], "B": [1, 1], "M": [0.4, 0.7]},
            "constraints": [
                {"kind": "point_on_line", "refs": ["M", "A-B"]},
                {"kind": "p2p_angle", "refs": ["A", "B"], "degrees": 45},
            ],
        }
    )

    on_line = sketch.system.constraint(sketch.handles[0])
    angle = sketch.system.constraint(sketch.handles[1])
    assert isinstance(on_line, PointOnLine)
    assert isinstance(angle, P2PAngle)
    assert angle.target == pytest.approx(math.pi / 4)


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"shapes": {}},
        {"points": {"A": [0]}},
        {"points": {"A": [0, "1"]}},
        {"points": {"A": [0, 0, "yes"]}},
        {"points": {"A": [0, 0]}, "lines": {"A": ["A", "A"]}},
        {"points": {"A": [0, 0]}, "lines": {"L": ["A", "Z"]}},
        {"points": {"A": [0, 0]}, "constraints": [{"refs": ["A.x"]}]},
        {"points": {"A": [0, 0]}, "constraints": [{"kind": "equal", "refs": ["A.x", "Q.y"]}]},
        {"points": {"A": [0, 0]}, "constraints": [{"kind": "equal", "refs": ["A.x", 3]}]},
        {"points": {"A": [0, 0], "B": [1, 0]}, "constraints": [{"kind": "equal", "refs": ["A", "B"]}]},
        {"points": {"A": [0, 0], "B": [1, 0]}, "constraints": [{"kind": "p2p_distance", "refs": ["A", "B"]}]},
        {"points": {"A": [0, 0], "B": [1, 0]}, "constraints": [{"kind": "p2p_distance", "refs": ["A", "B"], "degrees": 3}]},
        {"points": {"A": [0, 0]}, "constraints": [{"kind": "equal", "refs": ["A.x", "A.y"], "tag": "x"}]},
        {"solver": {"algorithm": "newton"}},
        {"solver": {"unknown": 1}},
    ],
)
def test_malformed_sketches_are_rejected(data):
    with pytest.raises(SketchFormatError):
        load_sketch(data)


def test_load_sketch_file(tmp_path):
    path = tmp_path / "rect.json"
    path.write_text(json.dumps(RECTANGLE), encoding="utf-8")
    assert len(load_sketch_file(path).handles) == 6

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(SketchFormatError):
        load_sketch_file(broken)
