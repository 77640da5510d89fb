"""
Structural invariants of the segmentation pipeline.

Property tests over random stamp sheets. Any failure here means an output
contract of segment() is broken, not just a tuning change.
"""
