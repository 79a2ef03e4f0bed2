"""Integration adapters.

Adapters connect the resolver to external systems. Discord is the only
surface so far.
"""
