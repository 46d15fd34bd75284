"""Command-line tools for vatcheck.

- ``python -m vatcheck.cli verify VAT`` -- verify one VAT number
- ``python -m vatcheck.cli providers`` -- list registered providers
- ``python -m vatcheck.cli from-file PATH`` -- verify a list of numbers
"""
