"""Developer command line helpers."""
