"""Readiness monitor subpackage: configuration, run state, exit policy and the instance lock."""

from netstartup.monitor.config import MonitorConfig, parse_duration, parse_list
from netstartup.monitor.lifecycle import ExitReason, LifecycleController, evaluate_exit
from netstartup.monitor.lock import InstanceLock
from netstartup.monitor.state import Aggregator, ReadinessState, outcome_to_flag

__all__ = [
    "MonitorConfig",
    "parse_duration",
    "parse_list",
    "ExitReason",
    "LifecycleController",
    "evaluate_exit",
    "InstanceLock",
    "Aggregator",
    "ReadinessState",
    "outcome_to_flag",
]
