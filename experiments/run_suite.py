from __future__ import annotations

import importlib
import pathlib
import sys

EXPERIMENTS = [
	"experiments.policy_comparison",
	"experiments.hysteresis_sweep",
]


def main() -> None:
	root = pathlib.Path(__file__).resolve().parents[1]
	sys.path.insert(0, str(root))
	for module_name in EXPERIMENTS:
		print(f"=== Running {module_name} ===")
		module = importlib.import_module(module_name)
		if hasattr(module, "run"):
			module.run()
		elif hasattr(module, "main"):
			module.main()
		else:
			print(f"Skipping {module_name}: no run()/main() entrypoint")


if __name__ == "__main__":
	main()
