"""
Shared helpers for core_backend. Reference numbers live in numbering.
"""
