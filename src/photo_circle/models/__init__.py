"""
Data models for Photo Circle.

Pydantic models for the relationship documents, resolved profiles and
notification payloads.
"""
