"""Domain layer: enums, errors and plain data classes."""
