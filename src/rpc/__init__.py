"""Node RPC access.

This module wraps the JSON-RPC endpoints of the reference and recovering
nodes behind small typed clients used by the verification stages.
"""
