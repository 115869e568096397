"""Example: snap a hand-drawn quadrilateral to a 4 x 3 rectangle."""

from gcs2d import System


def main() -> None:
    system = System()
    a = system.create_point(0.0, 0.0, locked=True, name="A")
    b = system.create_point(3.7, 0.3, name="B")
    c = system.create_point(4.2, 2.6, name="C")
    d = system.create_point(0.2, 3.3, name="D")

    system.horizontal(system.create_line(a, b))
    system.vertical(system.create_line(b, c))
    system.horizontal(system.create_line(c, d))
    system.vertical(system.create_line(d, a))
    system.distance(a, b, 4.0)
    system.distance(b, c, 3.0)

    result = system.solve()
    print("Status:", result.status)
    print("Iterations:", result.iterations)
    print("Max residual:", result.max_residual)
    for name, point in zip("ABCD", (a, b, c, d)):
        print(f"{name}: ({point.x:.6f}, {point.y:.6f})")


if __name__ == "__main__":
    main()
