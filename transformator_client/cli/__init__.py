"""Command-line interface for transformator_client."""
