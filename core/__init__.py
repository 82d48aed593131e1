"""Core business logic, independent of Flask."""
