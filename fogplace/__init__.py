"""
Adaptive fog placement controller package.

Modules:
- state: nodes, application graph, placement map and controller state
- power: utilization-to-power curves
- cost_models: latency / energy / cost estimates per node and module
- policy: hysteresis-guarded candidate selection and tier-level replication planning
- telemetry: aggregation of substrate telemetry snapshots
- controller: threshold-driven remapping state machine
- config: controller settings from YAML and environment
- scenario: topology and application builders
- des_simulator: reference event loop and fog substrate for end-to-end runs
- report: shutdown report tables
- api: REST API surface for placement/telemetry/evaluate/report
"""
