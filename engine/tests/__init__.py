"""
Test suite for the attrition engine.
"""
