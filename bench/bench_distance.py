import math
import os

import matplotlib.pyplot as plt
import pandas as pd
import torch

from pairdist_cuda import DistanceType, compute_reference, pairwise_distance, get_workspace_size

HERE = os.path.dirname(os.path.abspath(__file__))

# ---------------------------------------------------------------------
# Utils
# ---------------------------------------------------------------------
def peak_mb():
    return torch.cuda.max_memory_allocated() / (1024 ** 2)


def time_ms(fn, iters=5):
    starter = torch.cuda.Event(enable_timing=True)
    ender = torch.cuda.Event(enable_timing=True)
    torch.cuda.synchronize()
    starter.record()
    for _ in range(iters):
        fn()
    ender.record()
    torch.cuda.synchronize()
    return starter.elapsed_time(ender) / iters


def run_one(fn_step):
    torch.cuda.empty_cache()
    torch.cuda.reset_peak_memory_stats()
    torch.cuda.synchronize()

    # warmup (JIT, kernel caching, etc.)
    fn_step()
    torch.cuda.synchronize()

    torch.cuda.reset_peak_memory_stats()
    ms = time_ms(fn_step)
    mb = peak_mb()
    return mb, ms


# ---------------------------------------------------------------------
# Per-config benchmark (reference kernel vs tiled implementation)
# ---------------------------------------------------------------------
def run_config(metric, m, n, k):
    X = torch.rand(m, k, device="cuda") * 2 - 1
    Y = torch.rand(n, k, device="cuda") * 2 - 1

    ref_mb, ref_ms = run_one(lambda: compute_reference(X, Y, metric))
    tiled_mb, tiled_ms = run_one(lambda: pairwise_distance(X, Y, metric))

    D_ref = compute_reference(X, Y, metric)
    D = pairwise_distance(X, Y, metric)
    max_abs_err = (D - D_ref).abs().nan_to_num(0.0).max().item()

    return dict(
        metric=metric.name, m=m, n=n, k=k,
        workspace_bytes=get_workspace_size(metric, X, Y),
        reference_mb=ref_mb,
        tiled_mb=tiled_mb,
        reference_ms=ref_ms,
        tiled_ms=tiled_ms,
        speedup=ref_ms / tiled_ms if tiled_ms > 0 else math.nan,
        max_abs_err=max_abs_err,
    )


# ---------------------------------------------------------------------
# Plotting helpers
# ---------------------------------------------------------------------
COLORS = {"Reference": "tab:red", "Tiled": "tab:green"}
MARKERS = {"Reference": "s", "Tiled": "o"}


def _plot_metric(ax, xs, results_list, metric_key, xlabel, ylabel, title):
    for label in ("Reference", "Tiled"):
        key = f"{label.lower()}_{metric_key}"
        ys = [r[key] for r in results_list]
        ax.plot(xs, ys, label=label, color=COLORS[label], marker=MARKERS[label],
                linewidth=1.8, markersize=6)

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend(fontsize=8)
    ax.grid(True, linestyle="--", alpha=0.4)


# ---------------------------------------------------------------------
# Main benchmark
# ---------------------------------------------------------------------
def main():
    assert torch.cuda.is_available()
    torch.manual_seed(0)

    # shapes the distance unit tests are usually run with
    grid = [
        (metric, m, n, k)
        for metric in DistanceType
        for (m, n, k) in [(1024, 1024, 32), (1024, 32, 1024), (32, 1024, 1024), (1024, 1024, 1024)]
    ]

    # Vary feature dimension – L2Expanded, m = n = 1024
    vary_k = [32, 64, 128, 256, 512, 1024]
    vary_k_grid = [(DistanceType.EucExpandedL2Sqrt, 1024, 1024, k) for k in vary_k]

    seen, all_configs = set(), []
    for cfg in grid + vary_k_grid:
        if cfg not in seen:
            seen.add(cfg)
            all_configs.append(cfg)

    results: dict[tuple, dict] = {}
    for metric, m, n, k in all_configs:
        print(f"Running {metric.name:20s} m={m:5d}, n={n:5d}, k={k:5d} …")
        results[(metric, m, n, k)] = run_config(metric, m, n, k)

    df = pd.DataFrame([results[cfg] for cfg in grid])

    pd.set_option("display.width", 160)
    pd.set_option("display.max_columns", None)
    print("\n===== BENCHMARK RESULTS =====\n")
    print(df)

    out_csv = os.path.join(HERE, "distance_benchmark.csv")
    df.to_csv(out_csv, index=False)
    print(f"\nSaved results to: {out_csv}")

    vary_k_rows = [results[cfg] for cfg in vary_k_grid]

    fig, axes = plt.subplots(1, 2, figsize=(12, 4.5))
    fig.suptitle("Pairwise distance benchmark  (L2Expanded, m = n = 1024)", fontsize=13, fontweight="bold")

    _plot_metric(
        axes[0], vary_k, vary_k_rows,
        metric_key="mb",
        xlabel="Feature Dimension (k)",
        ylabel="Peak GPU RAM (MB)",
        title="Memory vs. Dimension",
    )
    _plot_metric(
        axes[1], vary_k, vary_k_rows,
        metric_key="ms",
        xlabel="Feature Dimension (k)",
        ylabel="Runtime (ms)",
        title="Runtime vs. Dimension",
    )

    plt.tight_layout()
    out_plot = os.path.join(HERE, "benchmark_plots.png")
    plt.savefig(out_plot, dpi=150, bbox_inches="tight")
    print(f"Saved plots to:   {out_plot}")
    plt.close()


if __name__ == "__main__":
    main()
