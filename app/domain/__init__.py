"""Domain-level values and rules.

This package holds the failure taxonomy and the normalized error shape,
independent from *where* they are produced (routes, repositories, the token
layer) or how they are rendered.
"""
