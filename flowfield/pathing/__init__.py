"""Search passes and the field combiner."""
