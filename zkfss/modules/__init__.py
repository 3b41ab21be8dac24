"""zkfss feature modules."""
