"""Allocation review and recruit onboarding."""
