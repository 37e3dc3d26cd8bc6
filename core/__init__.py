"""Core pipeline services: provider clients, assembly, progress and errors."""
