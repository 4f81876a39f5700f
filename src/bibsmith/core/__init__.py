"""Parsing core shared by the public API and the command line interface."""
