"""Pipeline stages: detection, recognition, capture and utilities."""
