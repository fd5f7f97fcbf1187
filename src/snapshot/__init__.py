"""Snapshot artifact reading.

This module decompresses and decodes storage-logs chunks exported by
the snapshot creator into typed storage records.
"""
