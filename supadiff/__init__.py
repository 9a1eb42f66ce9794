"""
supadiff
========

Drift detection between two Supabase environments.

The modules are intended to be used together via the CLI entry point:

- :mod:`supadiff.cli`

Pipeline
--------
- :mod:`supadiff.collectors` probes tables and storage for one environment.
- :mod:`supadiff.diffing` compares two environment snapshots.
- :mod:`supadiff.syncgen` renders a reviewable SQL sync script.
- :mod:`supadiff.reporting` narrates progress and writes the output files.
"""

__version__ = "0.1.0"
