"""
Test suite for MediBook.

Contains unit tests for the booking services and API tests through the
FastAPI test client.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
