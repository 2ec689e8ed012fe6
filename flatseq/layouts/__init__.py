"""
Built-in layout definitions for flatseq.

Contains YAML mapping files for well-known flat-file formats. The loader
module (layout_registry.py in the parent package) reads these files at
runtime.
"""
