from __future__ import annotations

import os
import logging

from fogplace.api import create_app
from fogplace.config import load_config
from fogplace.controller import RemappingController, build_controller
from fogplace.scenario import Scenario, env_monitor_scenario, load_scenario

logger = logging.getLogger(__name__)


def seed_state(controller: RemappingController) -> None:
    """Submit the initial placement if none exists yet. Safe to call multiple times."""
    if len(controller.placement) > 0:
        return
    controller.initial_placement()
    logger.info(f"Seeded initial placement: {controller.placement.as_dict()}")


def load_default_scenario() -> Scenario:
    scenario_path = os.getenv("FOGPLACE_SCENARIO")
    if scenario_path and os.path.exists(scenario_path):
        try:
            return load_scenario(scenario_path)
        except ValueError as e:
            logger.warning(f"Failed to load scenario {scenario_path}: {e}")
    else:
        logger.info("No scenario file configured, using built-in env-monitor scenario")
    return env_monitor_scenario()


def build_app():
	"""Build the Flask app with a seeded controller over the default scenario."""
	scenario = load_default_scenario()
	config = load_config(base=scenario.controller)

	controller = build_controller(scenario, config)
	seed_state(controller)
	return create_app(controller)


# Build app at module level (for gunicorn)
app = build_app()


if __name__ == "__main__":
	app.run(host="0.0.0.0", port=8080)
