"""Core moderation logic: review queue, RBAC, configuration and logging."""
