"""
Test suite for UI Explorer.

Unit tests for each component plus end-to-end runs of both explorers
against an in-memory browser.
"""
