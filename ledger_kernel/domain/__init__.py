"""Domain layer - pure value objects, lifecycle rules and collaborator protocols."""
