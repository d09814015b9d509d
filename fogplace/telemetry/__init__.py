"""Telemetry aggregation for the remapping controller."""

from fogplace.telemetry.collector import TelemetryAggregator, TelemetrySample

__all__ = ['TelemetryAggregator', 'TelemetrySample']
