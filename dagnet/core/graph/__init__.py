"""Graph data model, traversal and declarative construction."""
