"""Configuration, logging, timezone and remote fetch infrastructure."""
