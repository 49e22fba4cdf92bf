"""Shared configuration and logging for the optimization harness."""
