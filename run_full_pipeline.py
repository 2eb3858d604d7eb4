#!/usr/bin/env python3
"""
Main CLI entrypoint for the Script Video Factory.

Convenience wrapper around app.pipelines.run_full_pipeline.main.
"""

import sys

from app.pipelines.run_full_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
