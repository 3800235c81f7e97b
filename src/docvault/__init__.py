"""docvault - immutable, versioned document storage on S3-compatible buckets.

Each revision of a logical document is stored as its own object named
``{name}_v{N}{ext}`` in a working or stable bucket chosen by lifecycle
category, carrying structured lifecycle metadata and free-form tags.
"""

__version__ = "0.1.0"
