"""Role-scoped operational analytics service."""
