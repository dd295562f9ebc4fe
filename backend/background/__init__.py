"""
Background handler, automation window tracking and the orchestrator that
runs one automation session per platform
"""
