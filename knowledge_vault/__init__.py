"""Knowledge Vault save-queue service.

Captured text travels from a capture surface through a durable, bounded
queue to the remote snippet store, with retries, backoff, and broadcast
notifications to every attached observer.
"""

__version__ = "0.1.0"
