#!/usr/bin/env python
"""
Benchmark sparse matrix-vector multiply against the dense product.

Measures, for random square matrices at a fixed density:
1. Time of ``A.multiply(x)`` vs ``dense @ x`` (speedup)
2. Memory of the CSR arrays vs the dense matrix
3. Scaling of the sparse multiply with nnz at fixed size

Usage:
    python benchmark_spmv.py                      # default sizes
    python benchmark_spmv.py --sizes 1000 4000    # custom sizes
    python benchmark_spmv.py --density 0.001 --repeat 50
"""

import argparse
import json
import os
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List

import torch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_krylov import random_sparse

OUTPUT_DIR = Path(__file__).parent / "results" / "benchmark_spmv"


@dataclass
class SpmvResult:
    """Result of one matrix size."""
    n: int
    nnz: int
    sparse_ms: float
    dense_ms: float
    speedup: float
    sparse_mb: float
    dense_mb: float
    memory_savings: float


def time_ms(fn, repeat: int) -> float:
    fn()  # warmup
    start = time.perf_counter()
    for _ in range(repeat):
        fn()
    return (time.perf_counter() - start) / repeat * 1000


def benchmark_sizes(sizes: List[int], density: float, repeat: int) -> List[SpmvResult]:
    results = []
    print(f"{'n':>7} {'nnz':>9} {'sparse ms':>10} {'dense ms':>10} {'speedup':>8} {'mem saved':>10}")
    for n in sizes:
        A = random_sparse((n, n), density=density, seed=n)
        dense = A.to_dense()
        x = torch.randn(n, dtype=torch.float64)

        sparse_ms = time_ms(lambda: A.multiply(x), repeat)
        dense_ms = time_ms(lambda: dense @ x, repeat)
        sparse_mb = A.memory_bytes() / 2**20
        dense_mb = A.dense_memory_bytes() / 2**20

        result = SpmvResult(
            n=n,
            nnz=A.nnz,
            sparse_ms=sparse_ms,
            dense_ms=dense_ms,
            speedup=dense_ms / sparse_ms,
            sparse_mb=sparse_mb,
            dense_mb=dense_mb,
            memory_savings=1 - sparse_mb / dense_mb,
        )
        results.append(result)
        print(f"{n:7d} {A.nnz:9d} {sparse_ms:10.3f} {dense_ms:10.3f} "
              f"{result.speedup:7.1f}x {result.memory_savings:9.1%}")
        del dense
    return results


def benchmark_nnz_scaling(n: int, densities: List[float], repeat: int):
    """Sparse multiply time at fixed n; should grow linearly with nnz."""
    print(f"\nScaling with nnz at n={n}")
    rows = []
    x = torch.randn(n, dtype=torch.float64)
    for density in densities:
        A = random_sparse((n, n), density=density, seed=0)
        ms = time_ms(lambda: A.multiply(x), repeat)
        rows.append({"density": density, "nnz": A.nnz, "ms": ms})
        print(f"  nnz={A.nnz:9d}: {ms:8.3f} ms  ({ms / max(A.nnz, 1) * 1e6:.2f} ns/nnz)")
    return rows


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--sizes", type=int, nargs="+", default=[500, 1000, 2000, 4000])
    parser.add_argument("--density", type=float, default=0.003)
    parser.add_argument("--repeat", type=int, default=20)
    parser.add_argument("--scaling-n", type=int, default=4000)
    args = parser.parse_args()

    torch.manual_seed(0)
    print(f"PyTorch {torch.__version__}, {torch.get_num_threads()} threads, density={args.density}\n")

    results = benchmark_sizes(args.sizes, args.density, args.repeat)
    scaling = benchmark_nnz_scaling(args.scaling_n, [0.0005, 0.001, 0.002, 0.004, 0.008], args.repeat)

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    with open(OUTPUT_DIR / "results.json", "w") as f:
        json.dump({
            "density": args.density,
            "sizes": [asdict(r) for r in results],
            "scaling": scaling,
        }, f, indent=2)
    print(f"\nResults saved to: {OUTPUT_DIR / 'results.json'}")


if __name__ == "__main__":
    main()
