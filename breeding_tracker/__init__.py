"""Lifecycle, prediction validation and reminder scheduling for breeding records."""
