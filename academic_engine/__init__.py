"""Academic performance engine: grades, ranks, attendance and at-risk classification."""
