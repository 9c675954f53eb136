"""Core domain: scenarios, execution and packages."""
