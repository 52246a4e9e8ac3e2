"""CLI module for chimpflow."""
