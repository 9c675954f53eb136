"""CLI module for apiwave."""
