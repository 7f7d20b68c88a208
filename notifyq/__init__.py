"""Multi-tenant notification delivery queue.

Layers follow the usual split: ``domain`` holds entities and errors,
``application`` the use cases and the delivery state machine,
``infrastructure`` persistence, providers and the worker pool, and
``interfaces`` the HTTP surface.
"""
