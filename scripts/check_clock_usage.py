from __future__ import annotations

import sys
from pathlib import Path


# Allow `python scripts/check_clock_usage.py` from a checkout.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from schoolcomms.core.clock_audit import scan_package


PACKAGE_DIR = ROOT_DIR / 'schoolcomms'


def main() -> int:
    violations = scan_package(PACKAGE_DIR)
    if violations:
        print('Read the clock through schoolcomms.core.time_provider instead:')
        for violation in violations:
            print(f' - schoolcomms/{violation}')
        return 1
    print('All clock reads in schoolcomms/ go through the time provider.')
    return 0


if __name__ == '__main__':
    sys.exit(main())
