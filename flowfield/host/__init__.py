"""Ways for a host to drive recomputation."""
