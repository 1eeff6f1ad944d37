"""Field-service permission and feature-flag service."""
