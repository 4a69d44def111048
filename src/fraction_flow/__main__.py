"""python -m fraction_flow"""

import sys

from .examples.pipelines import main

if __name__ == "__main__":
    sys.exit(main())
