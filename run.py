#!/usr/bin/env python3
"""Development runner"""
import sys
from rotabackup.cli import main

if __name__ == '__main__':
    # e.g. ./run.py file -z -s ./src -d ./backups
    sys.exit(main())
