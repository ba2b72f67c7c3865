"""Prompting package.

This package contains prompt templates, fixed reply texts, and deterministic
message-list builders. It does not perform routing, retries, or model invocation.
"""
