"""Identity storage and room view models."""
