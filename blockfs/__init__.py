"""An in-memory block file system: buffer cache, write-ahead log, inodes, directories, pipes and an image builder."""

__version__ = "0.1.0"