"""
Shared test doubles.
"""
