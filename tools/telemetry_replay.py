from __future__ import annotations

import csv
import time
import json
from itertools import groupby
from typing import Dict, Any, List
import requests


def load_trace(csv_path: str) -> list[dict[str, str]]:
	with open(csv_path, newline="") as f:
		return list(csv.DictReader(f))


def to_sample(time_ms: str, rows: List[dict[str, str]]) -> Dict[str, Any]:
	"""
	Rows sharing a time_ms form one telemetry push.
	
	Columns: time_ms, loop (modules joined by '>'), avg_ms, node_id, energy_j, cost_units.
	Empty cells are skipped; an empty avg_ms reports the loop as unsampled.
	"""
	loops: Dict[str, Any] = {}
	energy: Dict[str, float] = {}
	cost = None
	for row in rows:
		if row.get("loop"):
			avg = row.get("avg_ms")
			loops[row["loop"]] = float(avg) if avg else None
		if row.get("node_id"):
			energy[row["node_id"]] = float(row.get("energy_j") or 0.0)
		if row.get("cost_units"):
			cost = float(row["cost_units"])
	return {
		"time_ms": float(time_ms),
		"loops": [{"modules": key.split(">"), "avg_ms": avg} for key, avg in loops.items()],
		"node_energy_j": energy,
		"cost_units": cost,
	}


def replay(url: str, sample: Dict[str, Any]) -> Dict[str, Any]:
	resp = requests.post(f"{url}/telemetry", json=sample, timeout=30)
	resp.raise_for_status()
	resp = requests.post(f"{url}/evaluate", timeout=30)
	resp.raise_for_status()
	return resp.json()


def main():
	import argparse

	parser = argparse.ArgumentParser()
	parser.add_argument("--trace", required=True)
	parser.add_argument("--url", default="http://localhost:8080")
	parser.add_argument("--delay", type=float, default=0.05, help="seconds between ticks")
	args = parser.parse_args()

	entries = load_trace(args.trace)
	for time_ms, rows in groupby(entries, key=lambda e: e["time_ms"]):
		out = replay(args.url, to_sample(time_ms, list(rows)))
		print(json.dumps({"time_ms": float(time_ms), **out}))
		time.sleep(args.delay)


if __name__ == "__main__":
	main()
