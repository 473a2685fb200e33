"""NetKnife HTTP security headers scanner (AWS Lambda)."""
