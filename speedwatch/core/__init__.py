"""
SpeedWatch Core Package

Owns the violation record store, payload validation, query filtering,
and aggregation.

Invariants:
- Single record store per process
- Records are immutable after insert; only delete-all removes them
- Reads are ordered newest-first with an id tie-break
"""
