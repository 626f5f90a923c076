"""Engine-wide primitives: errors and score arithmetic."""
