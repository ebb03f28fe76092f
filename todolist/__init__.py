"""
Personal to-do list manager: CLI, single-user and multi-user web front ends
over one JSON-backed task store.
"""

__version__ = "0.1.0"
