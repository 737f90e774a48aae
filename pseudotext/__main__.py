#!/usr/bin/env python3
"""Allow running as: python -m pseudotext"""

import sys

from pseudotext.cli import main

sys.exit(main())
