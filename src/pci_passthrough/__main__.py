#!/usr/bin/env python3
"""vfio-passthrough - Module entry point."""
import sys

from pci_passthrough.cli import main

if __name__ == "__main__":
    sys.exit(main())
