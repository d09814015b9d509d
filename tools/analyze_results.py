from __future__ import annotations

import json
from pathlib import Path
import statistics as stats


def summarize_comparison(path: str) -> None:
	report = Path(path)
	if not report.exists():
		print(f"No comparison report at {path}")
		return
	data = json.loads(report.read_text())
	for policy, summary in data.items():
		latencies = [tick["avg_latency_ms"] for tick in summary.get("timeline", [])]
		energy = sum(e["energy_j"] for e in summary.get("node_energy_j", []))
		cost = summary.get("cost_units")
		line = f"{policy:12s} ticks={summary.get('ticks', 0)} changes={summary.get('mode_changes', 0)}"
		if latencies:
			line += f" mean={stats.mean(latencies):.1f} p95={percentile(latencies, 95):.1f}"
		line += f" energy={energy:.1f}J cost={cost if cost is not None else 'N/A'}"
		line += f" dropped={summary.get('dropped_tuples', 0)}"
		print(line)


def percentile(values, p):
	values = sorted(values)
	k = (len(values)-1) * p/100.0
	f = int(k)
	c = min(f+1, len(values)-1)
	if f == c:
		return values[int(k)]
	return values[f] + (values[c] - values[f]) * (k - f)


def main():
	import argparse

	parser = argparse.ArgumentParser()
	parser.add_argument("--report", default="reports/experiments/policy_comparison.json")
	args = parser.parse_args()
	summarize_comparison(args.report)


if __name__ == "__main__":
	main()
