#!/usr/bin/env python
"""
Benchmark for the torch-krylov iterative solvers.

CG runs on random sparse SPD matrices, BiCG on random non-symmetric
diagonally dominant ones. Each run reports wall time, iteration count and
the true residual ``||b - A x||``.

Usage:
    python benchmark_solvers.py                     # default sizes
    python benchmark_solvers.py --sizes 100 1000    # custom sizes
    python benchmark_solvers.py --dtype float32     # lower precision
"""

import argparse
import json
import os
import sys
import time
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional

import torch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import torch_krylov as tk

OUTPUT_DIR = Path(__file__).parent / "results" / "benchmark_solvers"


@dataclass
class BenchmarkResult:
    """Result of a single benchmark run."""
    method: str
    n: int
    nnz: int
    time_ms: float
    iterations: int
    residual: float
    success: bool
    error_msg: Optional[str] = None


def make_system(method: str, n: int, dtype):
    if method == "cg":
        A = tk.random_spd(n, density=min(1.0, 5.0 / n), seed=n, dtype=dtype)
    else:
        A = tk.random_diagonally_dominant(n, density=min(1.0, 5.0 / n), seed=n, dtype=dtype)
    b = torch.ones(n, dtype=dtype)
    return A, b


def run_one(method: str, n: int, dtype, atol: float) -> BenchmarkResult:
    A, b = make_system(method, n, dtype)
    start = time.perf_counter()
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            result = tk.spsolve(A, b, method=method, atol=atol)
    except tk.KrylovError as e:
        return BenchmarkResult(method, n, A.nnz, (time.perf_counter() - start) * 1000,
                               0, float("nan"), False, str(e))
    elapsed = (time.perf_counter() - start) * 1000
    true_residual = torch.linalg.norm(b - A @ result.x).item()
    return BenchmarkResult(method, n, A.nnz, elapsed, result.num_iters, true_residual, True)


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--sizes", type=int, nargs="+", default=[50, 100, 1000, 10000, 100000])
    parser.add_argument("--methods", nargs="+", default=tk.get_available_methods(),
                        choices=tk.get_available_methods())
    parser.add_argument("--dtype", choices=["float32", "float64"], default="float64")
    args = parser.parse_args()

    dtype = getattr(torch, args.dtype)
    atol = 1e-10 if dtype == torch.float64 else 1e-5

    results: List[BenchmarkResult] = []
    print(f"{'method':>6} {'n':>8} {'nnz':>9} {'time ms':>10} {'iters':>6} {'residual':>10}")
    for method in args.methods:
        for n in args.sizes:
            r = run_one(method, n, dtype, atol)
            results.append(r)
            if r.success:
                print(f"{method:>6} {n:8d} {r.nnz:9d} {r.time_ms:10.2f} {r.iterations:6d} {r.residual:10.2e}")
            else:
                print(f"{method:>6} {n:8d} {r.nnz:9d} {'FAILED':>10}  {r.error_msg}")

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    path = OUTPUT_DIR / f"results_{args.dtype}.json"
    with open(path, "w") as f:
        json.dump([asdict(r) for r in results], f, indent=2)
    print(f"\nResults saved to: {path}")


if __name__ == "__main__":
    main()
