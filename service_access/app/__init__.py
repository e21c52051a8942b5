"""Application package for the access core."""
