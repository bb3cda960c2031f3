"""
Live score synchronization pipeline.
Keeps locally stored match scores in step with the federation data source
during active tournament windows, under per-tournament rate limits.
"""
