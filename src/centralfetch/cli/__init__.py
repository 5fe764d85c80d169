"""CLI package for centralfetch."""
