"""Bundled Morse encoding table and curriculum."""
