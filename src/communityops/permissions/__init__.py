"""Role-based permission levels."""
