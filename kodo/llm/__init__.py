"""Model metadata, resolution, and the OpenAI-compatible streaming client."""
