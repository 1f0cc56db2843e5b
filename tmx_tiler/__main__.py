#!/usr/bin/env python3

"""
tmx_tiler command line

Usage:
    python -m tmx_tiler tob -i picture.png -n tree 0 0 3t 4t
    python -m tmx_tiler place world.tmx tree.tmx 10 15
    python -m tmx_tiler map-render -i world.sqlite --x1 100 --y1 100
    python -m tmx_tiler cutter -i sheet.png
"""

from .cli import main

if __name__ == "__main__":
    main()
