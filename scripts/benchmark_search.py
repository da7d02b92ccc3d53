"""
Micro-benchmark for the ingestion pipeline and the search index.

Tests:
1. ingest_rows() on a synthetic 10k-row catalog
2. SearchIndex build time
3. SearchIndex.search() latency for typical queries

Usage:
    python scripts/benchmark_search.py
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
import time
import numpy as np
import pandas as pd
from ingest import ingest_rows
from search_index import SearchIndex


def generate_synthetic_rows(n_rows: int = 10000, seed: int = 7) -> pd.DataFrame:
    """Generate synthetic headerless catalog rows (model, compatibility)."""
    rng = np.random.default_rng(seed)
    families = ['iPhone', 'Galaxy A', 'Galaxy S', 'Moto G', 'Redmi Note', 'Pixel', 'Poco X']
    variants = ['', ' Pro', ' Plus', ' Ultra', ' Lite', ' 5G']

    data = []
    for i in range(n_rows):
        family = rng.choice(families)
        number = int(rng.integers(1, 60))
        model = f"{family} {number}{rng.choice(variants)} #{i}"
        if rng.random() < 0.1:
            compat = "Este Modelo já está disponível na tabela VIP"
        else:
            siblings = [f"{family} {number}{v}" for v in rng.choice(variants, size=3, replace=False)]
            compat = " / ".join(siblings)
        data.append({'model': model, 'compatibility': compat})

    return pd.DataFrame(data)


def benchmark_function(func, *args, **kwargs):
    """Benchmark a function and return (result, elapsed_ms)."""
    start = time.perf_counter()
    result = func(*args, **kwargs)
    end = time.perf_counter()
    return result, (end - start) * 1000


def main():
    df = generate_synthetic_rows()
    rows = df[['model', 'compatibility']].values.tolist()

    print("\n" + "=" * 70)
    print(f"BENCHMARK: ingest_rows() on {len(rows):,} rows")
    print("=" * 70)
    result, elapsed = benchmark_function(ingest_rows, rows)
    print(f"  Accepted: {result.accepted:,}  Duplicates: {result.duplicates_skipped:,}")
    print(f"  Total: {elapsed:.2f}ms ({elapsed * 1000 / len(rows):.2f}μs per row)")

    print("\n" + "=" * 70)
    print("BENCHMARK: SearchIndex build")
    print("=" * 70)
    index, elapsed = benchmark_function(SearchIndex, result.records)
    print(f"  {len(index):,} records indexed in {elapsed:.2f}ms")

    print("\n" + "=" * 70)
    print("BENCHMARK: SearchIndex.search()")
    print("=" * 70)
    for query in ["iph", "iphone 12 pro", "galaxy a5", "moto g 8", "redmi nte 9", "xyzzy"]:
        hits, elapsed = benchmark_function(index.search_hits, query, 5)
        best = hits[0].record.model_name if hits else '-'
        print(f"  {query!r:20} {elapsed:8.2f}ms  {len(hits)} hits  best={best}")


if __name__ == "__main__":
    main()
