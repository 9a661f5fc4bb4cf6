"""Example AWS S3 external client."""
