#!/usr/bin/env python3
"""
GIF Budget - Main Entry Point
Shrink animated GIFs to a size budget (with tolerance), a maximum width and
an accepted duration range by searching a ladder of ffmpeg encode profiles
"""

import sys

# Force UTF-8 encoding for console output
if sys.platform.startswith('win'):
    if hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8')
    if hasattr(sys.stderr, 'reconfigure'):
        sys.stderr.reconfigure(encoding='utf-8')

from gifbudget.cli import main

if __name__ == '__main__':
    main()
