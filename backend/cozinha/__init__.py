"""Cozinha ao Lucro backend."""
