"""railsmith -- scaffolds a Rails 8 application with built-in authentication."""

__version__ = "0.1.0"
