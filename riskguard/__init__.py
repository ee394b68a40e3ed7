"""
Transaction risk scoring and alert review pipeline.
"""

__version__ = "3.2.0"
