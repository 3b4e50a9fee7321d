"""Notification and reminder engine for the project-management API."""
