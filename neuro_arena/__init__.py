"""
Neuro-Arena: generational evaluation of evolved controllers in a shared simulation

Genomes are decoded into control artifacts, bound to pooled agents,
run for timed trials on a cooperative host clock, and scored by the
mean of their per-trial fitness samples.
"""

__version__ = "0.1.0"
