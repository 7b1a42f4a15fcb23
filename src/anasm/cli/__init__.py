"""
anasm Command-Line Interface
============================

- ``anasm``: assemble a source file, or disassemble an artifact with ``-d``
"""
