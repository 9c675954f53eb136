"""Repositories and result export."""
