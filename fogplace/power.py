"""Power models mapping utilization to power draw."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LinearPowerModel:
	"""
	Linear utilization-to-power curve.
	
	power(u) = idle_w + (busy_w - idle_w) * u, for u in [0, 1]
	"""
	
	busy_w: float
	idle_w: float
	
	def __post_init__(self) -> None:
		if self.busy_w < 0 or self.idle_w < 0:
			raise ValueError("power levels must be non-negative")
	
	def __call__(self, utilization: float) -> float:
		"""
		Power draw at the given utilization.
		
		Args:
			utilization: Fraction of capacity in use (0.0 to 1.0)
			
		Returns:
			Power in watts
			
		Raises:
			ValueError: If utilization is outside [0, 1]
		"""
		if utilization < 0.0 or utilization > 1.0:
			raise ValueError(f"utilization must be in [0, 1], got {utilization}")
		return self.idle_w + (self.busy_w - self.idle_w) * utilization
	
	def to_dict(self) -> dict:
		"""Export the curve parameters as a dictionary."""
		return {
			'kind': 'linear',
			'busy_w': self.busy_w,
			'idle_w': self.idle_w,
		}
