"""Server-side services. Routes call into these and own the commit."""
