"""HTTP API for gradeproof."""
