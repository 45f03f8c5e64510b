"""Bundle repositories: the index catalog, repository generation and reference resolution."""
