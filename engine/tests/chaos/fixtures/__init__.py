"""
Fakes for chaos scenarios.
"""
