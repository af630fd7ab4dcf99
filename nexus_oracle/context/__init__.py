"""Request-context components: stage classification, ranking, matching and role-scoped assembly."""
