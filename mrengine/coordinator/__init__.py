"""Job driver, task scheduling, shuffle and metrics."""
