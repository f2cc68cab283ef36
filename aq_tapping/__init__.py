"""AQ-10 autistic traits, age, gender and finger-tapping analysis report."""

__version__ = "1.0.0"
