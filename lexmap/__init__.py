"""Word root standardization service: phrase to identifier mapping and hybrid search."""
