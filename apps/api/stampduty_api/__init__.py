"""Stamp-duty webhook receiver service."""
