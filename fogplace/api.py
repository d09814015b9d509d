from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from fogplace.controller import RemappingController
from fogplace.cost_models import describe_scores
from fogplace.report import build_report
from fogplace.telemetry.collector import TelemetrySample

logger = logging.getLogger(__name__)


def create_app(controller: RemappingController, simulation: Optional[Any] = None) -> Flask:
	app = Flask(__name__)
	# Store collaborators in app config so every endpoint sees the same instances
	app.config['controller'] = controller
	app.config['simulation'] = simulation

	planner = controller.planner
	topology = planner.topology
	application = planner.application

	@app.get("/placement")
	def placement() -> Any:
		ctl = app.config['controller']
		return jsonify({
			"mode": ctl.mode.value,
			"placement": ctl.placement.as_dict(),
		})

	@app.get("/state")
	def state() -> Any:
		return jsonify(app.config['controller'].describe())

	@app.post("/telemetry")
	def telemetry() -> Any:
		ctl = app.config['controller']
		body: Dict[str, Any] = request.get_json(force=True, silent=True)
		if body is None:
			return jsonify({"error": "missing telemetry body"}), 400
		try:
			sample = TelemetrySample.from_dict(body)
		except (ValueError, TypeError) as e:
			return jsonify({"error": str(e)}), 400
		ctl.aggregator.ingest(sample)
		return jsonify({"status": "ok", "telemetry": ctl.aggregator.snapshot()})

	@app.post("/evaluate")
	def evaluate() -> Any:
		ctl = app.config['controller']
		result = ctl.evaluate()
		last = ctl.history[-1] if ctl.history else None
		return jsonify({
			"mode": ctl.mode.value,
			"changed": bool(last and last.changed),
			"placement": result.as_dict(),
			"unplaced": list(last.unplaced) if last else [],
		})

	@app.post("/score")
	def score() -> Any:
		ctl = app.config['controller']
		body: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
		if not isinstance(body, dict):
			return jsonify({"error": "score body must be an object"}), 400
		module_name = body.get("module")
		if not module_name or not isinstance(module_name, str):
			return jsonify({"error": "missing 'module' field"}), 400
		module = application.get_module(module_name)
		if module is None:
			return jsonify({"error": f"unknown module '{module_name}'"}), 404

		node_ids = body.get("nodes")
		if node_ids is None:
			candidates = topology.list_nodes()
		else:
			if not isinstance(node_ids, list):
				return jsonify({"error": "'nodes' must be a list of node ids"}), 400
			candidates = []
			for node_id in node_ids:
				try:
					node = topology.get_node(int(node_id))
				except (TypeError, ValueError):
					return jsonify({"error": f"invalid node id {node_id!r}"}), 400
				if node is None:
					return jsonify({"error": f"unknown node '{node_id}'"}), 404
				candidates.append(node)

		selector = planner.selector
		ordered = [node for node, _ in selector.rank(candidates, module_name, ctl.state.weights)]
		best = selector.select_best(candidates, module_name, ctl.state)
		return jsonify({
			"module": module_name,
			"order": selector.order,
			"hysteresis": ctl.state.hysteresis,
			"candidates": describe_scores(
				ordered, module, ctl.state.weights, planner.cost_models.rate_per_million_work_units
			),
			"selected": None if best is None else {"node_id": best.id, "node": best.name},
		})

	@app.get("/history")
	def history() -> Any:
		ctl = app.config['controller']
		limit = request.args.get("limit", default=100, type=int)
		return jsonify({"ticks": [rec.to_dict() for rec in ctl.recent_history(limit)]})

	@app.get("/report")
	def report() -> Any:
		ctl = app.config['controller']
		sim = app.config['simulation']
		if sim is not None:
			ctl.aggregator.ingest(sim.telemetry())
		return jsonify(build_report(application, topology, ctl.aggregator, ctl).to_dict())

	@app.get("/topology")
	def topology_view() -> Any:
		return jsonify({"nodes": topology.describe()})

	return app
