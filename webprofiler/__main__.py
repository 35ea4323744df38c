"""Main entry point for the webprofiler package.

Usage:
    python -m webprofiler https://example.com
    python -m webprofiler https://example.com --profile 20
    python -m webprofiler https://example.com --profile 50 --concurrency 5 --output results.tsv
"""

from .cli.profile import main

if __name__ == "__main__":
    main()
