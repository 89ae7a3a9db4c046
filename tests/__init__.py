"""
Test suite for the Clinic Booking Service.

Contains unit and integration tests for booking, the live dashboard view,
outbound messaging and administration.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
