"""Standalone transformator server supervision."""

from .process import LaunchState, SupervisedProcess, resolve_binary, spawn_standalone

__all__ = ["LaunchState", "SupervisedProcess", "resolve_binary", "spawn_standalone"]
