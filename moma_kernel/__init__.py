"""
MOMA Kernel - categorical algebra core

A pure, in-memory algebra for monetary macro accounting diagrams:
- Categories with value-checked composition and identity laws
- Patterns, colimits and complexification
- Functors and natural transformations between categories
- Memory, co-regulator and hierarchy structures for evolutive systems
"""

__version__ = "0.1.0"
