"""Meeting analysis engine."""
