"""Selection-pipeline services built on :mod:`stat_edge.core`.

- ``aggregator``: per-team rolling profiles, competition reliability policy
- ``combined``: match-level combined metrics
- ``probability``: Poisson / negative-binomial over-under probabilities
- ``odds``: bookmaker payload parsing and line shopping
- ``edges``: margin removal and positive-edge candidates
- ``guards``: suspicious-odds plausibility checks
- ``integrity``: goals-first stats integrity validation
"""
