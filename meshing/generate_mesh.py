#!/usr/bin/env python3
"""
Generate tagged rectangle meshes for the solver.

Physical groups: bottom=1, right=2, top=3, left=4, domain=1.

Typical usage:
  python meshing/generate_mesh.py --mesh-size 0.05 --out meshing/unit_square.msh
"""

import argparse
from pathlib import Path

from poissonfem import read_mesh
from poissonfem.meshing import generate_rectangle


def main():
    parser = argparse.ArgumentParser(description="Generate tagged rectangle meshes")
    parser.add_argument("--x0", type=float, default=0.0)
    parser.add_argument("--y0", type=float, default=0.0)
    parser.add_argument("--L1", type=float, default=1.0)
    parser.add_argument("--L2", type=float, default=1.0)
    parser.add_argument("--mesh-size", type=float, default=0.05)
    parser.add_argument("--out", type=Path, default=Path("meshing/unit_square.msh"))
    args = parser.parse_args()

    path = generate_rectangle(args.x0, args.y0, args.L1, args.L2, args.mesh_size, args.out)
    mesh = read_mesh(path)
    print(f"Saved mesh to {path}")
    print(f"  Nodes: {mesh.nonodes}")
    print(f"  Elements: {mesh.noelms}")
    print(f"  Boundary edges: {mesh.noedges}")


if __name__ == "__main__":
    main()
