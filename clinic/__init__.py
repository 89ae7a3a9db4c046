"""
Clinic Booking Service

FastAPI backend for the clinic website: appointment and contact forms,
outbound patient messaging, and the administrator's live appointment view.
"""

__version__ = "1.0.0"
