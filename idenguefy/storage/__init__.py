"""On-disk state: tile cache, map pointers, alert history."""
