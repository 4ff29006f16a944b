"""Dataset collaborators consumed by data-source units."""
