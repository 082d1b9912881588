"""Core engine: behavior settings, errors and the decision pipeline."""
