"""Domain layer: enums, entities and exceptions (no infrastructure imports)."""
