"""Core mathematics and configuration for the stat-edge selection engine.

This package contains pure, market-agnostic building blocks:

- ``metrics``: metric identifiers and the multiplier / bounds tables
- ``engine_config``: every tunable constant in one frozen bundle
- ``odds_math``: implied probability, margin removal, edge
- ``count_models``: Poisson and negative-binomial PMF / CDF
- ``rules``: versioned qualification rule tables
- ``types``: DTOs flowing between the services

Nothing in this package imports from ``stat_edge.services``.
All modules are side-effect-free and unit-testable in isolation.
"""
