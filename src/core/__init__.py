"""Core domain package for boardwatch.

Core contains event identity and the deduplicating counter store without any
HTTP or logging-sink specific code, keeping the business logic portable.
"""
