"""strata: snapshot and diff immutable, content-addressed hierarchies."""

__version__ = "0.1.0"
