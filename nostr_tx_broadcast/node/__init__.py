"""Bitcoin node adapters.

The bridge only needs two submission operations; see `base.NodeClient`.
"""
