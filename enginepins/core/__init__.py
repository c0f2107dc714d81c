"""Core manifest-building engine: URLs, versions, hashing, scheduling, storage."""
