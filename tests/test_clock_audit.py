from pathlib import Path

from schoolcomms.core.clock_audit import scan_package


PACKAGE_DIR = Path(__file__).resolve().parents[1] / 'schoolcomms'


def _write(root, relative, source):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding='utf-8')
    return path


def test_package_reads_clock_only_through_time_provider():
    violations = scan_package(PACKAGE_DIR)
    assert not violations, '\n'.join(str(v) for v in violations)


def test_wall_clock_reads_are_reported_with_line(tmp_path):
    _write(
        tmp_path,
        'services/expiry.py',
        'import time\n\n\ndef expired(started):\n    return time.time() - started > 5\n',
    )
    _write(tmp_path, 'services/stamp.py', 'from datetime import datetime\nSTAMP = datetime.utcnow()\n')

    violations = scan_package(tmp_path)

    assert [(v.path, v.line_no) for v in violations] == [
        ('services/expiry.py', 5),
        ('services/stamp.py', 2),
    ]
    assert 'time.time()' in violations[0].line


def test_time_provider_and_interval_timers_are_allowed(tmp_path):
    _write(tmp_path, 'core/time_provider.py', 'from datetime import datetime\nNOW = datetime.now()\n')
    _write(
        tmp_path,
        'metrics.py',
        'import time\nstarted = time.perf_counter()\nticks = time.monotonic()\n# time.time() is not used here\n',
    )

    assert scan_package(tmp_path) == []
