"""
MediBook

A FastAPI-based healthcare appointment booking backend: patient and doctor
registration, admin verification of doctors, and slot booking with
double-booking prevention.
"""

__version__ = "1.0.0"
