"""Configuration, logging, persistence and error taxonomy."""
