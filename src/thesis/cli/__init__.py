"""Thesis command-line interface."""
