"""Shared code for the property survey backend.

This package holds the parts of the application that do not depend on Flask:

- Database models (models.py) - SQLAlchemy models for citizens and surveys
- Enums (enums.py) - Survey status values and upload categories
- Owner details (owner_details.py) - Repair, identifier checks and masking
- Validation utilities (validation.py, schemas.py) - Input validation and sanitization
- Utility functions (utils.py) - Image verification and upload naming helpers
"""
