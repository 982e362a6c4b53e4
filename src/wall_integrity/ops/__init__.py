"""Pure geometry helpers shared by detectors, recovery and fallbacks.

- segments: segment intersection and self-intersection search
- polylines: point-list cleanup (dedupe, simplify, clamp, snap)
- shapes: shapely-backed offsets, outlines and booleans
"""
