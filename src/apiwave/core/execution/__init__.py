"""Test run execution."""
