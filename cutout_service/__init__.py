"""
Local background-removal package.

Exposes reusable primitives for acquiring segmentation models, loading them
into onnxruntime sessions, running batch inference over local images, and
serving the FastAPI application.
"""

__version__ = "0.1.0"
