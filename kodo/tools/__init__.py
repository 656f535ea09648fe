"""Tool set resolution and builtin tools."""
