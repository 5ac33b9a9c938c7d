"""Used-vehicle model canonicalization backend."""
