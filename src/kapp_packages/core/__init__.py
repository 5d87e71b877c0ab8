"""Transport-independent package logic.

Version sets, constraint resolution, the metadata/version join, pagination,
status projection and credential field handling.
"""
