"""
Job alert pipeline.

Turns job-alert email tables and rendered job pages into field-level
extraction results with provenance, ready to become job records.
"""

__version__ = "1.0.0"
