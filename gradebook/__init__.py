"""Sequence gradebook: marks over six sequences, term and annual rankings."""
