"""HTTP API for Ahurasense Core."""
