"""Project model, configuration, entry resolution and bundle planning."""
