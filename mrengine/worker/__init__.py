"""Map and reduce task harnesses."""
