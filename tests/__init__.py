"""
Test Suite Initialization

Foundry runner test configuration.
"""
