"""Auxiliary tooling built on top of the recovery engine."""
