"""Goal inference filters and their scheduling across agents."""
