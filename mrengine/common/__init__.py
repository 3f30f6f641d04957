"""Errors, configuration and the record source / output sink shared by the engine."""
