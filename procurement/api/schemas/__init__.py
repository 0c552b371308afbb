"""Request and response schemas for the procurement API."""
