"""
visitplanner - Plan baby visits, publish bookable slots and take bookings.
"""

__version__ = "0.1.0"
