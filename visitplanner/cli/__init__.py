"""
Command line interface for caregivers.
"""
