"""Utility modules for agentloop."""
