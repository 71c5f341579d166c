"""
application - Use-case layer: agent context, context loading, the
bulletin board and the deterministic sync skills.

Concrete repositories reach this layer only through the Store handle.
"""
