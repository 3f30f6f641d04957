"""Command line interface and progress monitoring."""
