# Report Runners Package
# Entry points for the CHD and diabetes reports

import os
# Set LOKY_MAX_CPU_COUNT early to silence joblib/loky warnings on Windows
os.environ.setdefault('LOKY_MAX_CPU_COUNT', str(os.cpu_count() or 1))

from . import run_chd_report
from . import run_diabetes_report

__all__ = [
    'run_chd_report',
    'run_diabetes_report',
]
