"""Read, write, inspect and extract Apple Web Archive (.webarchive) files."""

__version__ = "0.1.0"
