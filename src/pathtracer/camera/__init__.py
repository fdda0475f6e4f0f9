"""Camera configuration and primary ray generation."""
