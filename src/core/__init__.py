"""Core domain package for adsentry.

Core contains the moderation policy, membership tracking, and scoring logic
without any Telegram, HTTP, or storage-specific code, keeping the business
logic portable.
"""
