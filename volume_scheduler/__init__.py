"""
Sound zone volume scheduler.

Keeps each configured sound zone at the volume its time-of-day schedule
asks for, pushing changes to the Soundtrack API only when they are needed.
"""

__version__ = "0.1.0"
