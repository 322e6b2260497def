"""Dependency-graph engine.

build -> detect cycles -> schedule -> group. Queries work on any built graph,
cyclic or not.
"""
