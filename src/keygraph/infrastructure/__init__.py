"""
Concrete implementations: graph nodes, runtime, op catalog and convolution.
"""
