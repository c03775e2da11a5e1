"""Skan REST API service."""
