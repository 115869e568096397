from .params import ParameterSnapshot, ParameterStore, ParamRef
from .geometry import Line, Point, Point2D
from .constraints import (
    CONSTRAINT_TYPES,
    Coincident,
    Constraint,
    ConstraintError,
    Difference,
    Equal,
    L2LAngle,
    P2PAngle,
    P2PDistance,
    Parallel,
    Perpendicular,
    PointOnLine,
    PointToLineDistance,
    build_constraint,
)
from .solver import (
    ALGORITHMS,
    DofReport,
    EquationSystem,
    SolveResult,
    SolverConfig,
    analyze_dof,
    get_default_solver_config,
    set_default_solver_config,
    solve_system,
)
from .system import ConstraintHandle, System
from .diagnostics import Diagnosis, diagnose
from .sketch_io import Sketch, SketchFormatError, dump_points, load_sketch, load_sketch_file

__all__ = [
    'ParameterSnapshot',
    'ParameterStore',
    'ParamRef',
    'Line',
    'Point',
    'Point2D',
    'CONSTRAINT_TYPES',
    'Coincident',
    'Constraint',
    'ConstraintError',
    'Difference',
    'Equal',
    'L2LAngle',
    'P2PAngle',
    'P2PDistance',
    'Parallel',
    'Perpendicular',
    'PointOnLine',
    'PointToLineDistance',
    'build_constraint',
    'ALGORITHMS',
    'DofReport',
    'EquationSystem',
    'SolveResult',
    'SolverConfig',
    'analyze_dof',
    'get_default_solver_config',
    'set_default_solver_config',
    'solve_system',
    'ConstraintHandle',
    'System',
    'Diagnosis',
    'diagnose',
    'Sketch',
    'SketchFormatError',
    'dump_points',
    'load_sketch',
    'load_sketch_file',
]
