"""External process supervision.

This module launches node tooling, streams the output of long-running
nodes, and tracks recovery milestones observed in that output.
"""
