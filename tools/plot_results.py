#!/usr/bin/env python3
import json
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

sns.set_theme(style="whitegrid", context="talk")

REPORTS = Path("reports/experiments")
COMPARISON_FILE = REPORTS / "policy_comparison.json"
SWEEP_FILE = REPORTS / "hysteresis_sweep.json"


def load_timeline(comparison):
    frames = []
    for policy, summary in comparison.items():
        df = pd.DataFrame(summary.get("timeline", []))
        if df.empty:
            continue
        df["policy"] = policy
        frames.append(df)
    return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()


def plot_latency_timeline(df):
    plt.figure(figsize=(10,4))
    sns.lineplot(x="time_ms", y="avg_latency_ms", data=df, hue="policy")
    plt.ylabel("Mean loop latency (ms)")
    plt.xlabel("Simulated time (ms)")
    plt.title("Loop latency per evaluation tick")
    plt.tight_layout()
    plt.savefig(REPORTS / "latency_timeline.png", dpi=300)


def plot_mode_timeline(df):
    adaptive = df[df["policy"] == "adaptive"].copy()
    if adaptive.empty:
        return
    adaptive["centralized"] = (adaptive["mode"] == "centralized").astype(int)
    plt.figure(figsize=(10,3))
    plt.step(adaptive["time_ms"], adaptive["centralized"], where="post", color="#3277d5")
    plt.yticks([0, 1], ["distributed", "centralized"])
    plt.xlabel("Simulated time (ms)")
    plt.title("Adaptive mode over time")
    plt.tight_layout()
    plt.savefig(REPORTS / "mode_timeline.png", dpi=300)


def plot_energy(comparison):
    rows = [
        {"policy": policy, "node": e["node"], "energy_j": e["energy_j"]}
        for policy, summary in comparison.items()
        for e in summary.get("node_energy_j", [])
    ]
    df = pd.DataFrame(rows)
    if df.empty:
        return
    plt.figure(figsize=(8,5))
    sns.barplot(x="node", y="energy_j", hue="policy", data=df)
    plt.ylabel("Energy (J)")
    plt.xlabel("Node")
    plt.title("Energy per node")
    plt.tight_layout()
    plt.savefig(REPORTS / "node_energy.png", dpi=300)


def plot_sweep():
    if not SWEEP_FILE.exists():
        return
    df = pd.DataFrame(json.loads(SWEEP_FILE.read_text()))
    plt.figure(figsize=(8,5))
    sns.lineplot(x="hysteresis", y="mean_regret", data=df, marker="o", color="#8e44ad")
    plt.ylabel("Mean regret (weighted score)")
    plt.xlabel("Hysteresis margin")
    plt.title("Hysteresis vs selection regret")
    plt.tight_layout()
    plt.savefig(REPORTS / "hysteresis_regret.png", dpi=300)


def main():
    if not COMPARISON_FILE.exists():
        print(f"Missing {COMPARISON_FILE}; run experiments/policy_comparison.py first")
        return
    comparison = json.loads(COMPARISON_FILE.read_text())
    timeline = load_timeline(comparison)
    if not timeline.empty:
        plot_latency_timeline(timeline)
        plot_mode_timeline(timeline)
    plot_energy(comparison)
    plot_sweep()
    print(f"Plots written to {REPORTS}")


if __name__ == "__main__":
    main()
