#!/usr/bin/env python3
"""Backup runner for cron"""
from serverbackup.cli import main

if __name__ == '__main__':
    # Job tables are looked up next to this script unless --config-dir is given
    main()
