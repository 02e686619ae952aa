"""Request and response schemas for the moderation API."""
