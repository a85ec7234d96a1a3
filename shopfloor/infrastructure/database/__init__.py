"""
SQL persistence for production tracking.
"""
