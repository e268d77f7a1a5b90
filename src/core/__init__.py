"""Core domain package for newsreel.

Core contains aggregation, episode compaction and chunking logic without any
email, Discord, Telegram or storage-specific code, keeping it portable and
testable without a media server.
"""
