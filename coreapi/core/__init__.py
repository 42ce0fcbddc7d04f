"""Record lifecycle: status policy, locking, change log, filters and envelopes."""
