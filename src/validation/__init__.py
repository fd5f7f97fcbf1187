"""Snapshot and recovery cross-validation.

This module compares snapshot contents and recovered node state against
the reference node.
"""
