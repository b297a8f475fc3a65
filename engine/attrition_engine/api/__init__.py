"""
API routes for the attrition engine.
"""
