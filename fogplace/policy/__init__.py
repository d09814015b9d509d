"""Placement policies: within-tier selection and tier-level planning."""

from fogplace.policy.base import Policy
from fogplace.policy.greedy import HysteresisSelector, order_candidates, select_best
from fogplace.policy.replication import ReplicationPlanner

__all__ = ['Policy', 'HysteresisSelector', 'ReplicationPlanner', 'order_candidates', 'select_best']
