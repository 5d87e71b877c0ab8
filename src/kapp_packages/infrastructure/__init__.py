"""Infrastructure layer.

This package provides the resource store abstraction over cluster objects and
its Kubernetes client implementation.
"""
