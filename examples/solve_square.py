"""Example: equal sides plus one right angle make a square; compares the algorithms."""

from gcs2d import System


def build() -> System:
    system = System()
    a = system.create_point(0.0, 0.0, locked=True, name="A")
    b = system.create_point(1.8, 0.2, name="B")
    c = system.create_point(2.1, 1.9, name="C")
    d = system.create_point(0.1, 2.2, name="D")
    for p, q in ((a, b), (b, c), (c, d), (d, a)):
        system.distance(p, q, 2.0)
    system.perpendicular(system.create_line(a, b), system.create_line(b, c))
    system.horizontal(system.create_line(a, b))
    return system


def main() -> None:
    for algorithm in ("dogleg", "lm", "bfgs"):
        system = build()
        result = system.solve(algorithm=algorithm)
        print(result.summary())
        for ref in range(0, len(system.params), 2):
            name = system.params.name(ref)[:-2]
            print(f"  {name}: ({system.value(ref):.6f}, {system.value(ref + 1):.6f})")


if __name__ == "__main__":
    main()
