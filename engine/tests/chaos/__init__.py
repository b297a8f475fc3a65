"""
Chaos/failure injection testing suite.

Exercises attrition runs end to end across many seeds and topologies:
- Run invariants (kill bounds, surviving pool, never the testers)
- Controller self-kill outcomes
- Suppression windows outliving cancelled runs
"""
