"""Utility modules for awsrollout."""
