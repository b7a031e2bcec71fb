"""Allow ``python -m volume_scheduler``."""

import sys

from .cli import main

sys.exit(main())
