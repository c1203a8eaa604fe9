"""MovieDNA - candidate aggregation and hybrid movie recommendation engine."""

__version__ = "1.0.0"
